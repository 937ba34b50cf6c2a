from __future__ import annotations

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from services.crypto_core.commitments import NULLIFIER_SIZE
from services.crypto_core.field import reduce_bytes

NULLIFIER_INFO = b"incognito-nullifier-v1|"
MIN_SEED_LEN = 32


def derive_nullifier(seed: bytes, nonce: int) -> bytes:
    """
    Deterministic nullifier for (seed, nonce): HKDF-SHA256 with the nonce
    in the info field, mapped onto a canonical field repr.
    """
    if nonce < 0:
        raise ValueError(f"nonce must be >= 0, got {nonce}")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=NULLIFIER_SIZE,
        salt=None,
        info=NULLIFIER_INFO + nonce.to_bytes(8, "little"),
    )
    return reduce_bytes(hkdf.derive(seed))


class SeedWrapper:
    """Holds the user's secret seed and hands out nullifiers per nonce."""

    __slots__ = ("_seed",)

    def __init__(self, seed: bytes):
        if len(seed) < MIN_SEED_LEN:
            raise ValueError(f"seed must be at least {MIN_SEED_LEN} bytes")
        self._seed = bytes(seed)

    def nullifier(self, nonce: int) -> bytes:
        return derive_nullifier(self._seed, nonce)

    def __repr__(self) -> str:
        return "SeedWrapper(<redacted>)"
