# services/crypto_core/field.py
# BN254 scalar-field helpers. Every value that enters a commitment is a
# field element encoded as 32 little-endian bytes ("repr" form); the
# on-chain storage keeps the same values in Montgomery form.
from __future__ import annotations

from typing import Iterable, List

# BN254 scalar field modulus (Fr)
FIELD_MODULUS = 21888242871839275222246405745257275088548364400416034343698204186575808495617

REPR_SIZE = 32

# Montgomery radix R = 2^256 mod p, and its inverse
MONT_R = pow(2, 256, FIELD_MODULUS)
MONT_R_INV = pow(MONT_R, -1, FIELD_MODULUS)


def to_field(x: int) -> int:
    """Reduce any Python int (negative included) into [0, p)."""
    return x % FIELD_MODULUS


def int_to_repr(x: int) -> bytes:
    return to_field(x).to_bytes(REPR_SIZE, "little")


def repr_to_int(b: bytes, strict: bool = True) -> int:
    """
    Decode a 32-byte little-endian repr.
    With strict=True a non-canonical value (>= p) is rejected instead of reduced.
    """
    if len(b) != REPR_SIZE:
        raise ValueError(f"Expected {REPR_SIZE} bytes, got {len(b)}")
    x = int.from_bytes(b, "little")
    if x >= FIELD_MODULUS:
        if strict:
            raise ValueError("Non-canonical field element")
        x %= FIELD_MODULUS
    return x


def reduce_bytes(b: bytes) -> bytes:
    """Map arbitrary 32 bytes onto their canonical repr (reduction mod p)."""
    return int_to_repr(repr_to_int(b, strict=False))


def repr_to_mont(b: bytes) -> int:
    return (repr_to_int(b, strict=False) * MONT_R) % FIELD_MODULUS


def mont_to_repr(m: int) -> bytes:
    return int_to_repr(m * MONT_R_INV)


def encode_elements(values: Iterable[int]) -> List[bytes]:
    return [int_to_repr(v) for v in values]
