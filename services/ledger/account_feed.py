# services/ledger/account_feed.py
# accountSubscribe over the Solana PubSub websocket.
from __future__ import annotations

import contextlib
import json
from typing import Any, AsyncIterator, Callable, Dict, Optional

import websockets
from websockets.exceptions import ConnectionClosed

from services.balance.config import FINALITY_COMMITMENT, RPC_TIMEOUT_SEC, SOLANA_WS_URL
from services.balance.interfaces import AccountSnapshot
from services.ledger.rpc_client import RpcError, decode_account_data
from services.logging_config import get_logger

logger = get_logger("ledger.account_feed")

WS_MAX_MESSAGE_BYTES = 16 * 1024 * 1024
_SUBSCRIBE_ID = 1
_UNSUBSCRIBE_ID = 2


def subscribe_request(account: str, commitment: str, req_id: int = _SUBSCRIBE_ID) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": req_id,
        "method": "accountSubscribe",
        "params": [account, {"encoding": "base64", "commitment": commitment}],
    }


def unsubscribe_request(subscription: int, req_id: int = _UNSUBSCRIBE_ID) -> Dict[str, Any]:
    return {"jsonrpc": "2.0", "id": req_id, "method": "accountUnsubscribe", "params": [subscription]}


def parse_account_notification(msg: Dict[str, Any], subscription: int) -> Optional[AccountSnapshot]:
    """AccountSnapshot for an accountNotification of `subscription`, None for anything else."""
    if msg.get("method") != "accountNotification":
        return None
    params = msg.get("params") or {}
    if params.get("subscription") != subscription:
        return None
    result = params.get("result") or {}
    value = result.get("value")
    if value is None:
        return None
    slot = (result.get("context") or {}).get("slot", 0)
    return AccountSnapshot(slot=slot, data=decode_account_data(value["data"]))


class SolanaAccountFeed:
    """
    Usage:
        feed = SolanaAccountFeed("wss://api.devnet.solana.com")
        async with contextlib.aclosing(feed.subscribe(storage_acc, "finalized")) as stream:
            async for snap in stream:
                ...
    Closing the stream sends accountUnsubscribe and closes the socket.
    """

    def __init__(
        self,
        ws_url: str = SOLANA_WS_URL,
        open_timeout: float = RPC_TIMEOUT_SEC,
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.ws_url = ws_url
        self.open_timeout = open_timeout
        self._connect = connect

    async def subscribe(self, account: str, commitment: str = FINALITY_COMMITMENT) -> AsyncIterator[AccountSnapshot]:
        logger.info(f"Subscribing to {account} at {commitment} via {self.ws_url}")
        async with self._connect(
            self.ws_url,
            open_timeout=self.open_timeout,
            max_size=WS_MAX_MESSAGE_BYTES,
            ping_interval=20,
            ping_timeout=20,
        ) as ws:
            await ws.send(json.dumps(subscribe_request(account, commitment)))
            subscription: Optional[int] = None
            try:
                async for raw in ws:
                    msg = json.loads(raw)
                    if subscription is None and msg.get("id") == _SUBSCRIBE_ID:
                        if msg.get("error"):
                            err = msg["error"]
                            raise RpcError("accountSubscribe", err.get("message", "unknown error"), err.get("code"))
                        subscription = msg["result"]
                        logger.debug(f"Subscription {subscription} active")
                        continue
                    if subscription is None:
                        continue
                    snapshot = parse_account_notification(msg, subscription)
                    if snapshot is not None:
                        yield snapshot
            finally:
                if subscription is not None:
                    with contextlib.suppress(ConnectionClosed):
                        await ws.send(json.dumps(unsubscribe_request(subscription)))
                    logger.debug(f"Subscription {subscription} closed")
