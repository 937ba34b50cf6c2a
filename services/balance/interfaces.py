"""
Collaborator contracts consumed by the commitment manager and the
insertion waiter. Implementations live outside this package (wallet
storage, tree service) or in services.ledger (Solana adapters).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Protocol, Sequence, Tuple, Union

from services.balance.transactions import PartialSendTx, PartialTopupTx

PrivateTxModel = Union[PartialTopupTx, PartialSendTx]


@dataclass(frozen=True)
class CommitmentOpening:
    """Inclusion data for one commitment hash."""
    opening: Tuple[bytes, ...]
    root: bytes
    index: int


@dataclass(frozen=True)
class AccountSnapshot:
    slot: int
    data: bytes


class SeedProvider(Protocol):
    def nullifier(self, nonce: int) -> bytes: ...


class TreeQueryService(Protocol):
    async def find(
        self, hashes: Sequence[bytes], start_indices: Sequence[int]
    ) -> List[Optional[CommitmentOpening]]:
        """One entry per hash, in order; None where the hash is not (yet) in the tree."""
        ...

    async def contains(self, commitment_hash: bytes, start_index: int) -> bool: ...


class TransactionHistoryService(Protocol):
    async def pending(
        self, token_type: str, before: Optional[PartialSendTx] = None
    ) -> List[PrivateTxModel]:
        """Unconfirmed transactions, oldest first, strictly before `before` if given."""
        ...

    async def balance_before_nonce(self, token_type: str, nonce: int) -> int:
        """Private balance right before `nonce`, replayed from confirmed history."""
        ...


class AccountFeed(Protocol):
    def subscribe(self, account: str, commitment: str) -> AsyncIterator[AccountSnapshot]:
        """Async iterator of account states; closing it ends the subscription."""
        ...


class AccountSource(Protocol):
    async def get_account_data(self, account: str, commitment: str) -> Optional[bytes]: ...


class TreeSnapshotReader(Protocol):
    async def find_commitment_index(
        self, snapshot_data: bytes, commitment_mont: int, start_account: int
    ) -> Optional[int]:
        """
        Scan the tree chunks referenced by a storage-account snapshot,
        starting at sub-account `start_account`, for a commitment given in
        Montgomery form. Returns its global (heap) index or None.
        """
        ...
