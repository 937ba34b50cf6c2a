"""
Waiting for a commitment to reach the finalized tree.

The waiter subscribes to the storage account at the configured
commitment level and runs a two-state machine:

    WAITING --(snapshot containing the commitment)--> FOUND(index)

Snapshots travel from the subscription to the waiter over an
asyncio.Queue; the subscription is closed as soon as the wait ends.
There is no built-in timeout, wrap the call in asyncio.wait_for when a
bound is needed.
"""
from __future__ import annotations

import asyncio
import contextlib
import enum
from dataclasses import dataclass
from typing import Optional, Union

from services.balance.config import FINALITY_COMMITMENT
from services.balance.interfaces import AccountFeed, AccountSnapshot, AccountSource, TreeSnapshotReader
from services.crypto_core.field import repr_to_mont
from services.ledger.tree_layout import LocalIndex, global_index_to_local_index, start_account_for_leaf
from services.logging_config import get_logger, short_hash

logger = get_logger("balance.finality")


class InsertionState(str, enum.Enum):
    WAITING = "waiting"
    FOUND = "found"


@dataclass(frozen=True)
class InsertionStatus:
    state: InsertionState
    index: Optional[LocalIndex] = None

    @property
    def found(self) -> bool:
        return self.state is InsertionState.FOUND


WAITING = InsertionStatus(InsertionState.WAITING)


class _FeedClosed:
    pass


_FEED_CLOSED = _FeedClosed()

ChannelMessage = Union[AccountSnapshot, BaseException, _FeedClosed]


class InsertionWaiter:
    def __init__(
        self,
        feed: AccountFeed,
        reader: TreeSnapshotReader,
        storage_account: str,
        commitment: str = FINALITY_COMMITMENT,
        account_source: Optional[AccountSource] = None,
    ):
        self.feed = feed
        self.reader = reader
        self.storage_account = storage_account
        self.commitment = commitment
        self.account_source = account_source

    async def await_insertion(
        self, commitment_hash: bytes, start_index: int = 0, check_current: bool = False
    ) -> bool:
        """
        True once a snapshot of the storage account contains the commitment.
        False if the feed ends first.

        The state before subscribing counts as "not found". With
        check_current=True one freshly fetched snapshot (needs an
        account_source) is fed through the same channel, so a commitment
        finalized just before the subscription is not missed.
        """
        status = await self.watch(commitment_hash, start_index, check_current)
        return status.found

    async def watch(
        self, commitment_hash: bytes, start_index: int = 0, check_current: bool = False
    ) -> InsertionStatus:
        if check_current and self.account_source is None:
            raise ValueError("check_current requires an account_source")

        target = repr_to_mont(commitment_hash)
        start_account = start_account_for_leaf(start_index).account
        channel: asyncio.Queue[ChannelMessage] = asyncio.Queue()

        logger.debug(f"Waiting for {short_hash(commitment_hash)} from storage account {start_account}")
        pump = asyncio.create_task(self._pump(channel))
        try:
            if check_current:
                data = await self.account_source.get_account_data(self.storage_account, self.commitment)
                if data is not None:
                    channel.put_nowait(AccountSnapshot(slot=-1, data=data))

            status = WAITING
            while not status.found:
                msg = await channel.get()
                if isinstance(msg, _FeedClosed):
                    logger.warning(f"Account feed closed before {short_hash(commitment_hash)} was found")
                    break
                if isinstance(msg, BaseException):
                    raise msg
                status = await self._advance(status, msg, target, start_account)
            return status
        finally:
            pump.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await pump

    async def _advance(
        self, status: InsertionStatus, snapshot: AccountSnapshot, target: int, start_account: int
    ) -> InsertionStatus:
        if status.found:
            return status
        g = await self.reader.find_commitment_index(snapshot.data, target, start_account)
        if g is None:
            return status
        li = global_index_to_local_index(g)
        logger.info(f"Commitment found at level {li.level} index {li.index} (slot {snapshot.slot})")
        return InsertionStatus(InsertionState.FOUND, li)

    async def _pump(self, channel: asyncio.Queue) -> None:
        try:
            async with contextlib.aclosing(self.feed.subscribe(self.storage_account, self.commitment)) as stream:
                async for snapshot in stream:
                    channel.put_nowait(snapshot)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            channel.put_nowait(e)
            return
        channel.put_nowait(_FEED_CLOSED)
