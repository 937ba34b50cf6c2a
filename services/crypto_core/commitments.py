"""
Commitment value objects.

An IncompleteCommitment is what the client can compute on its own the
moment a transaction is drafted: nullifier, post-transaction balance,
token id and the tree index the leaf is expected at or after. Once the
accumulator confirms the leaf, activate() attaches the Merkle opening and
yields a Commitment. Both are immutable; identity is the commitment hash.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property
from typing import Dict, Generic, Iterable, Iterator, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union

from services.crypto_core.field import REPR_SIZE, int_to_repr, repr_to_int

NULLIFIER_SIZE = 32


class CommitmentHasher(Protocol):
    """
    The circuit's field hash (Poseidon over BN254 Fr on the deployed
    program). Must match the circuit byte for byte; every commitment and
    manager takes it explicitly.
    """

    def hash_fields(self, elements: Sequence[int]) -> int:
        """Hash field elements to a single field element."""
        ...


@dataclass(frozen=True, eq=False)
class IncompleteCommitment:
    nullifier: bytes = field(repr=False)
    balance: int
    token_id: int
    tree_start_index: int
    hasher: CommitmentHasher = field(repr=False, kw_only=True)

    def __post_init__(self) -> None:
        if len(self.nullifier) != NULLIFIER_SIZE:
            raise ValueError(f"nullifier must be {NULLIFIER_SIZE} bytes, got {len(self.nullifier)}")
        if self.tree_start_index < 0:
            raise ValueError(f"tree_start_index must be >= 0, got {self.tree_start_index}")
        if self.token_id < 0:
            raise ValueError(f"token_id must be >= 0, got {self.token_id}")

    @cached_property
    def hash(self) -> bytes:
        """Commitment hash as a 32-byte little-endian field repr."""
        digest = self.hasher.hash_fields((
            repr_to_int(self.nullifier, strict=False),
            self.balance,
            self.token_id,
            self.tree_start_index,
        ))
        return int_to_repr(digest)

    def get_commitment_hash(self) -> bytes:
        return self.hash

    def activate(self, merkle_opening: Sequence[bytes], root: bytes, leaf_index: int) -> "Commitment":
        return Commitment(
            self.nullifier,
            self.balance,
            self.token_id,
            self.tree_start_index,
            tuple(merkle_opening),
            root,
            leaf_index,
            hasher=self.hasher,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IncompleteCommitment):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)


@dataclass(frozen=True, eq=False)
class Commitment(IncompleteCommitment):
    merkle_opening: Tuple[bytes, ...]
    root: bytes
    leaf_index: int

    def __post_init__(self) -> None:
        super().__post_init__()
        if self.leaf_index < 0:
            raise ValueError(f"leaf_index must be >= 0, got {self.leaf_index}")
        if len(self.root) != REPR_SIZE:
            raise ValueError(f"root must be {REPR_SIZE} bytes, got {len(self.root)}")

    @classmethod
    def from_incomplete_commitment(
        cls,
        ic: IncompleteCommitment,
        merkle_opening: Sequence[bytes],
        root: bytes,
        leaf_index: int,
    ) -> "Commitment":
        return ic.activate(merkle_opening, root, leaf_index)


C = TypeVar("C", bound=IncompleteCommitment)


class CommitmentSet(Generic[C]):
    """
    Commitments keyed by hash. Duplicate hashes collapse onto the first
    entry; iteration follows first-insertion order.
    """

    def __init__(self, items: Iterable[C] = ()):
        self._by_hash: Dict[bytes, C] = {}
        for c in items:
            self.add(c)

    def add(self, c: C) -> bool:
        """Returns False when an entry with the same hash is already present."""
        if c.hash in self._by_hash:
            return False
        self._by_hash[c.hash] = c
        return True

    def get(self, commitment_hash: bytes) -> Optional[C]:
        return self._by_hash.get(commitment_hash)

    def hashes(self) -> List[bytes]:
        return list(self._by_hash)

    def to_list(self) -> List[C]:
        return list(self._by_hash.values())

    def total_balance(self) -> int:
        return sum(c.balance for c in self._by_hash.values())

    def __contains__(self, item: Union[bytes, IncompleteCommitment]) -> bool:
        key = item if isinstance(item, (bytes, bytearray)) else item.hash
        return bytes(key) in self._by_hash

    def __iter__(self) -> Iterator[C]:
        return iter(self._by_hash.values())

    def __len__(self) -> int:
        return len(self._by_hash)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CommitmentSet):
            return NotImplemented
        return set(self._by_hash) == set(other._by_hash)

    def __repr__(self) -> str:
        return f"CommitmentSet({len(self)} commitments)"
