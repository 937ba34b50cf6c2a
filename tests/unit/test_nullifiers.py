"""Nullifier derivation tests."""
import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from fixtures.fakes import OTHER_SEED, TEST_SEED
from services.crypto_core.field import FIELD_MODULUS, repr_to_int
from services.crypto_core.nullifiers import NULLIFIER_INFO, SeedWrapper, derive_nullifier


class TestDeriveNullifier:
    def test_deterministic(self):
        assert derive_nullifier(TEST_SEED, 3) == derive_nullifier(TEST_SEED, 3)

    def test_matches_hkdf(self):
        raw = HKDF(
            algorithm=hashes.SHA256(),
            length=32,
            salt=None,
            info=NULLIFIER_INFO + (5).to_bytes(8, "little"),
        ).derive(TEST_SEED)
        expected = (int.from_bytes(raw, "little") % FIELD_MODULUS).to_bytes(32, "little")
        assert derive_nullifier(TEST_SEED, 5) == expected

    def test_canonical_field_element(self):
        for nonce in range(10):
            repr_to_int(derive_nullifier(TEST_SEED, nonce))  # strict, must not raise

    def test_varies_with_nonce_and_seed(self):
        assert derive_nullifier(TEST_SEED, 1) != derive_nullifier(TEST_SEED, 2)
        assert derive_nullifier(TEST_SEED, 1) != derive_nullifier(OTHER_SEED, 1)

    def test_negative_nonce(self):
        with pytest.raises(ValueError):
            derive_nullifier(TEST_SEED, -1)


class TestSeedWrapper:
    def test_nullifier(self, seed):
        assert seed.nullifier(7) == derive_nullifier(TEST_SEED, 7)

    def test_short_seed(self):
        with pytest.raises(ValueError):
            SeedWrapper(b"\x01" * 31)

    def test_repr_hides_seed(self, seed):
        assert TEST_SEED.hex() not in repr(seed)
        assert "redacted" in repr(seed)
