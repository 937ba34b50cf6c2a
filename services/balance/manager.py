"""
Commitment manager: turns a user's pending transactions into the set of
commitments a new transaction may spend.

- Topups: commitment is fully determined by the tx and the seed.
- Sends: the produced commitment carries the leftover balance. It is
  rebuilt from cached metadata when that reproduces the recorded hash,
  otherwise from the balance replayed out of confirmed history.
- Activation attaches Merkle openings from the tree service.

The manager keeps no state between calls; the history service and the
on-chain tree are the sources of truth.
"""
from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence, Tuple

from services.balance.config import SEND_ARITY
from services.balance.errors import (
    ActivationIncomplete,
    CommitmentMismatch,
    InvalidTransactionType,
    PendingConfirmation,
    TooManyActiveCommitments,
)
from services.balance.finality import InsertionWaiter
from services.balance.interfaces import (
    PrivateTxModel,
    SeedProvider,
    TransactionHistoryService,
    TreeQueryService,
)
from services.balance.token_types import get_number_from_token_type
from services.balance.transactions import CommitmentMetadata, PartialSendTx, PartialTopupTx
from services.crypto_core.commitments import (
    Commitment,
    CommitmentHasher,
    CommitmentSet,
    IncompleteCommitment,
)
from services.logging_config import get_logger, short_hash

logger = get_logger("balance.manager")


class CommitmentManager:
    def __init__(
        self,
        tx_history: TransactionHistoryService,
        tree: TreeQueryService,
        hasher: CommitmentHasher,
        waiter: Optional[InsertionWaiter] = None,
    ):
        self.tx_history = tx_history
        self.tree = tree
        self.waiter = waiter
        self.hasher = hasher

    # ===== Construction (pure) =====

    @staticmethod
    def build_commitment_for_topup(
        tx: PartialTopupTx, seed: SeedProvider, hasher: CommitmentHasher
    ) -> IncompleteCommitment:
        return IncompleteCommitment(
            seed.nullifier(tx.nonce),
            tx.amount,
            get_number_from_token_type(tx.token_type),
            tx.merkle_start_index,
            hasher=hasher,
        )

    @staticmethod
    def build_commitment_for_send(
        nullifier: bytes,
        token_type: str,
        prior_balance: int,
        send_amount: int,
        total_fee: int,
        tree_start_index: int,
        hasher: CommitmentHasher,
    ) -> IncompleteCommitment:
        """
        Commitment holding what is left after a send.

        NOTE: total_fee excludes the extra (third-party) fee and the token
        account rent; callers fold those into send_amount. The result is
        not checked for being non-negative, sufficient balance is
        validated upstream.
        """
        return IncompleteCommitment(
            nullifier,
            prior_balance - send_amount - total_fee,
            get_number_from_token_type(token_type),
            tree_start_index,
            hasher=hasher,
        )

    @staticmethod
    def commitment_from_metadata(
        seed: SeedProvider, meta: CommitmentMetadata, hasher: CommitmentHasher
    ) -> IncompleteCommitment:
        return IncompleteCommitment(
            seed.nullifier(meta.nonce),
            meta.balance,
            get_number_from_token_type(meta.token_type),
            meta.assoc_comm_index,
            hasher=hasher,
        )

    @staticmethod
    def normalize_start_indices(start_indices: Sequence[Optional[int]]) -> List[int]:
        """Missing entries take the last known index before them (0 if none)."""
        default = 0
        res: List[int] = []
        for si in start_indices:
            if si is None:
                res.append(default)
            else:
                res.append(si)
                default = si
        return res

    @staticmethod
    def need_merge(active_commitments: Sequence[IncompleteCommitment] | CommitmentSet) -> bool:
        n = len(active_commitments)
        if n > SEND_ARITY:
            raise TooManyActiveCommitments(n, SEND_ARITY)
        return n == SEND_ARITY

    # ===== Reconciliation =====

    async def resolve_send_commitment(self, tx: PartialSendTx, seed: SeedProvider) -> IncompleteCommitment:
        if tx.metadata is not None:
            fast = self.commitment_from_metadata(seed, tx.metadata, self.hasher)
            if fast.hash == tx.commitment_hash:
                return fast
            logger.info(f"Cached metadata for nonce {tx.nonce} does not match {short_hash(tx.commitment_hash)}, replaying history")

        # slow but authoritative; nothing from tx.metadata is used past this point
        prior_balance = await self.tx_history.balance_before_nonce(tx.token_type, tx.nonce)
        slow = self.build_commitment_for_send(
            seed.nullifier(tx.nonce),
            tx.token_type,
            prior_balance,
            tx.amount,
            tx.fee,
            self._start_index_or_zero(tx),
            self.hasher,
        )
        if slow.hash != tx.commitment_hash:
            logger.error(f"Commitment reconstruction failed for nonce {tx.nonce}")
            raise CommitmentMismatch(tx.nonce)
        return slow

    @staticmethod
    def _start_index_or_zero(tx: PrivateTxModel) -> int:
        return tx.merkle_start_index if tx.merkle_start_index is not None else 0

    async def get_commitment_for_transaction(self, tx: PrivateTxModel, seed: SeedProvider) -> IncompleteCommitment:
        match tx:
            case PartialTopupTx():
                return self.build_commitment_for_topup(tx, seed, self.hasher)
            case PartialSendTx():
                return await self.resolve_send_commitment(tx, seed)
            case _:
                raise InvalidTransactionType(tx)

    async def get_incomplete_commitments_for_txs(
        self, txs: Sequence[PrivateTxModel], seed: SeedProvider
    ) -> Tuple[CommitmentSet[IncompleteCommitment], List[Optional[int]]]:
        """
        Commitments for `txs` in tx order plus each tx's own start index
        (None where the tx has none). Sends are resolved concurrently.

        A tx whose commitment is already in the set is dropped from both
        outputs. If the dropped tx had a start index, it is carried onto
        the next kept entry that has none, so normalizing the result gives
        the same indices as normalizing the full per-tx list.
        """
        slots: List[Optional[IncompleteCommitment]] = [None] * len(txs)
        send_positions: List[int] = []
        send_jobs = []

        for i, tx in enumerate(txs):
            match tx:
                case PartialTopupTx():
                    slots[i] = self.build_commitment_for_topup(tx, seed, self.hasher)
                case PartialSendTx():
                    send_positions.append(i)
                    send_jobs.append(self.resolve_send_commitment(tx, seed))
                case _:
                    raise InvalidTransactionType(tx)

        for i, comm in zip(send_positions, await asyncio.gather(*send_jobs)):
            slots[i] = comm

        commitments: CommitmentSet[IncompleteCommitment] = CommitmentSet()
        start_indices: List[Optional[int]] = []
        carried: Optional[int] = None
        for tx, comm in zip(txs, slots):
            si = tx.merkle_start_index
            if not commitments.add(comm):
                logger.warning(f"Duplicate commitment {short_hash(comm.hash)} for nonce {tx.nonce}, skipping")
                if si is not None:
                    carried = si
                continue
            if si is None:
                si = carried
            carried = None
            start_indices.append(si)
        return commitments, start_indices

    # ===== Activation =====

    async def activate_commitments(
        self,
        incomplete: CommitmentSet[IncompleteCommitment],
        start_indices: Sequence[Optional[int]],
    ) -> CommitmentSet[Commitment]:
        comms = incomplete.to_list()
        normalized = self.normalize_start_indices(start_indices)
        if len(comms) != len(normalized):
            raise ValueError(f"Got {len(normalized)} start indices for {len(comms)} commitments")
        if not comms:
            return CommitmentSet()

        hashes = [c.hash for c in comms]
        openings = await self.tree.find(hashes, normalized)
        if len(openings) != len(comms):
            raise ValueError(f"Tree returned {len(openings)} results for {len(comms)} commitments")

        missing = [h for h, o in zip(hashes, openings) if o is None]
        if missing:
            raise ActivationIncomplete(missing)

        res: CommitmentSet[Commitment] = CommitmentSet()
        for c, o in zip(comms, openings):
            res.add(c.activate(o.opening, o.root, o.index))
        return res

    async def get_active_commitments(
        self,
        token_type: str,
        seed: SeedProvider,
        before_send: Optional[PartialSendTx] = None,
    ) -> CommitmentSet[Commitment]:
        active_txs = await self.tx_history.pending(token_type, before_send)
        if not active_txs:
            return CommitmentSet()

        # the newest pending tx must have landed before anything builds on it
        latest = active_txs[-1]
        if not await self.is_transaction_confirmed(latest, seed):
            raise PendingConfirmation(latest.nonce)

        incomplete, start_indices = await self.get_incomplete_commitments_for_txs(active_txs, seed)
        active = await self.activate_commitments(incomplete, start_indices)
        logger.debug(f"{len(active)} active commitment(s) for {token_type}")
        return active

    # ===== Confirmation / finality =====

    async def is_commitment_inserted(self, commitment_hash: bytes, start_index: int = 0) -> bool:
        return await self.tree.contains(commitment_hash, start_index)

    async def is_transaction_confirmed(self, tx: PrivateTxModel, seed: SeedProvider) -> bool:
        comm = await self.get_commitment_for_transaction(tx, seed)
        return await self.is_commitment_inserted(comm.hash, self._start_index_or_zero(tx))

    async def await_commitment_insertion(self, commitment_hash: bytes, start_index: int = 0) -> bool:
        if self.waiter is None:
            raise RuntimeError("CommitmentManager was created without an InsertionWaiter")
        return await self.waiter.await_insertion(commitment_hash, start_index)
