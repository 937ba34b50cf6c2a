"""
In-memory stand-ins for the collaborators the commitment manager and
insertion waiter talk to. They record every call so tests can assert on
network traffic.
"""

import asyncio
import hashlib
from typing import Dict, List, Optional, Sequence, Tuple

from services.balance.interfaces import AccountSnapshot, CommitmentOpening
from services.balance.manager import CommitmentManager
from services.balance.transactions import CommitmentMetadata, PartialSendTx, PartialTopupTx
from services.crypto_core.field import REPR_SIZE, int_to_repr, repr_to_mont, to_field
from services.ledger.tree_layout import comm_leaf_index_to_local_index, local_index_to_global_index

TEST_SEED = bytes(range(32))
OTHER_SEED = bytes(range(100, 132))

ROOT = b"\x07" * 32

TEST_HASH_DOMAIN = b"incognito-commitment-test"


class Sha256TestHasher:
    """
    SHA-256 over a domain tag, the element count and each element's
    32-byte repr, reduced into Fr. Deterministic stand-in for the circuit
    hash; its output never matches an on-chain commitment.
    """

    def __init__(self, domain: bytes = TEST_HASH_DOMAIN):
        self.domain = domain

    def hash_fields(self, elements):
        h = hashlib.sha256(self.domain)
        h.update(len(elements).to_bytes(1, "little"))
        for e in elements:
            h.update(int_to_repr(e))
        return to_field(int.from_bytes(h.digest(), "little"))


TEST_HASHER = Sha256TestHasher()


class FakeHistory:
    def __init__(self, pending_txs=None, balances: Optional[Dict[Tuple[str, int], int]] = None):
        self.pending_txs = list(pending_txs or [])
        self.balances = dict(balances or {})
        self.pending_calls: List[Tuple[str, Optional[PartialSendTx]]] = []
        self.balance_calls: List[Tuple[str, int]] = []

    async def pending(self, token_type, before=None):
        self.pending_calls.append((token_type, before))
        txs = [t for t in self.pending_txs if t.token_type == token_type]
        if before is not None:
            txs = [t for t in txs if t.nonce < before.nonce]
        return txs

    async def balance_before_nonce(self, token_type, nonce):
        self.balance_calls.append((token_type, nonce))
        await asyncio.sleep(0)
        return self.balances[(token_type, nonce)]


class GatedHistory(FakeHistory):
    """
    balance_before_nonce parks every caller until `expected` calls are in
    flight at once, then answers them in reverse arrival order.
    """

    def __init__(self, expected: int, balances: Dict[Tuple[str, int], int]):
        super().__init__(balances=balances)
        self.expected = expected
        self.in_flight = 0
        self.max_in_flight = 0
        self.replied = 0
        self.reply_order: List[int] = []
        self.all_arrived = asyncio.Event()

    async def balance_before_nonce(self, token_type, nonce):
        pos = len(self.balance_calls)
        self.balance_calls.append((token_type, nonce))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.in_flight == self.expected:
            self.all_arrived.set()
        await self.all_arrived.wait()
        while self.replied < self.expected - 1 - pos:
            await asyncio.sleep(0)
        self.reply_order.append(nonce)
        self.replied += 1
        self.in_flight -= 1
        return self.balances[(token_type, nonce)]


class FakeTree:
    def __init__(self):
        self.leaves: Dict[bytes, int] = {}
        self.find_calls: List[Tuple[List[bytes], List[int]]] = []
        self.contains_calls: List[Tuple[bytes, int]] = []

    def insert(self, commitment_hash: bytes, leaf_index: int) -> None:
        self.leaves[commitment_hash] = leaf_index

    @staticmethod
    def opening_for(leaf_index: int) -> Tuple[bytes, ...]:
        return tuple(int_to_repr(leaf_index * 100 + level) for level in range(3))

    async def find(self, hashes: Sequence[bytes], start_indices: Sequence[int]):
        self.find_calls.append((list(hashes), list(start_indices)))
        res = []
        for h, si in zip(hashes, start_indices):
            idx = self.leaves.get(h)
            if idx is None or idx < si:
                res.append(None)
            else:
                res.append(CommitmentOpening(opening=self.opening_for(idx), root=ROOT, index=idx))
        return res

    async def contains(self, commitment_hash: bytes, start_index: int) -> bool:
        self.contains_calls.append((commitment_hash, start_index))
        idx = self.leaves.get(commitment_hash)
        return idx is not None and idx >= start_index


class FakeFeed:
    """Yields the given snapshots; with hold_open the stream then stays idle."""

    def __init__(self, snapshots: Sequence[AccountSnapshot], hold_open: bool = False, fail_with=None):
        self.snapshots = list(snapshots)
        self.hold_open = hold_open
        self.fail_with = fail_with
        self.subscriptions: List[Tuple[str, str]] = []
        self.yielded = 0
        self.closed = False

    async def subscribe(self, account, commitment):
        self.subscriptions.append((account, commitment))
        try:
            for snap in self.snapshots:
                await asyncio.sleep(0)
                self.yielded += 1
                yield snap
            if self.fail_with is not None:
                raise self.fail_with
            if self.hold_open:
                await asyncio.Event().wait()
        finally:
            self.closed = True


class FakeSnapshotReader:
    """Snapshot data is a flat list of 32-byte Montgomery values, one per leaf from leaf 0."""

    def __init__(self):
        self.calls: List[Tuple[int, int]] = []

    async def find_commitment_index(self, snapshot_data, commitment_mont, start_account):
        self.calls.append((commitment_mont, start_account))
        for leaf in range(len(snapshot_data) // REPR_SIZE):
            chunk = snapshot_data[leaf * REPR_SIZE:(leaf + 1) * REPR_SIZE]
            if int.from_bytes(chunk, "little") == commitment_mont:
                return local_index_to_global_index(comm_leaf_index_to_local_index(leaf))
        return None


class FakeAccountSource:
    def __init__(self, data: Optional[bytes]):
        self.data = data
        self.calls: List[Tuple[str, str]] = []

    async def get_account_data(self, account, commitment):
        self.calls.append((account, commitment))
        return self.data


def snapshot_with_leaves(hashes: Sequence[bytes], slot: int = 1) -> AccountSnapshot:
    data = b"".join(repr_to_mont(h).to_bytes(REPR_SIZE, "little") for h in hashes)
    return AccountSnapshot(slot=slot, data=data)


def make_topup(nonce: int, amount: int, start_index: int, token_type: str = "LAMPORTS") -> PartialTopupTx:
    return PartialTopupTx(nonce=nonce, token_type=token_type, amount=amount, merkle_start_index=start_index)


def make_send(
    seed,
    nonce: int,
    prior_balance: int,
    amount: int,
    fee: int,
    start_index: Optional[int] = None,
    token_type: str = "LAMPORTS",
    metadata: str = "good",
) -> PartialSendTx:
    """
    Send tx carrying the correct commitment hash.
    metadata: "good" (matches), "stale" (wrong balance), "bad_index"
    (right balance, wrong assoc_comm_index) or "none".
    """
    comm = CommitmentManager.build_commitment_for_send(
        seed.nullifier(nonce), token_type, prior_balance, amount, fee,
        start_index if start_index is not None else 0,
        TEST_HASHER,
    )
    meta = None
    if metadata != "none":
        balance = comm.balance + 1 if metadata == "stale" else comm.balance
        index = comm.tree_start_index + 5 if metadata == "bad_index" else comm.tree_start_index
        meta = CommitmentMetadata(
            nonce=nonce, balance=balance, token_type=token_type, assoc_comm_index=index,
        )
    return PartialSendTx(
        nonce=nonce, token_type=token_type, amount=amount, fee=fee,
        commitment_hash=comm.hash, merkle_start_index=start_index, metadata=meta,
    )
