"""
Async Solana JSON-RPC client (httpx).

Retries transport errors, HTTP 429 and 5xx with exponential backoff
(retry_delay, 2x, 4x ...). JSON-RPC level errors are not retried.
"""
from __future__ import annotations

import asyncio
import base64
import itertools
from typing import Any, List, Optional, Union

import base58
import httpx

from services.balance.config import (
    FINALITY_COMMITMENT,
    RPC_MAX_RETRIES,
    RPC_RETRY_DELAY_SEC,
    RPC_TIMEOUT_SEC,
    SOLANA_RPC_URL,
)
from services.logging_config import get_logger

logger = get_logger("ledger.rpc")


class RpcError(RuntimeError):
    """Raised when an RPC call fails for good (JSON-RPC error or retries exhausted)."""

    def __init__(self, method: str, message: str, code: Optional[int] = None):
        super().__init__(f"{method} failed: {message}" + (f" (code {code})" if code is not None else ""))
        self.method = method
        self.code = code


def decode_account_data(data: Union[str, List[str]]) -> bytes:
    """
    Account `data` as returned by getAccountInfo / accountNotification:
    [payload, "base64"], [payload, "base58"] or a bare base58 string (legacy).
    """
    if isinstance(data, str):
        return base58.b58decode(data)
    payload, encoding = data[0], data[1]
    if encoding == "base64":
        return base64.b64decode(payload)
    if encoding == "base58":
        return base58.b58decode(payload)
    raise ValueError(f"Unsupported account data encoding: {encoding}")


class SolanaRpcClient:
    def __init__(
        self,
        rpc_url: str = SOLANA_RPC_URL,
        timeout: float = RPC_TIMEOUT_SEC,
        max_retries: int = RPC_MAX_RETRIES,
        retry_delay: float = RPC_RETRY_DELAY_SEC,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self.rpc_url = rpc_url
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._ids = itertools.count(1)
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def __aenter__(self) -> "SolanaRpcClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def call(self, method: str, params: Optional[list] = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        last_error: Optional[str] = None

        for attempt in range(self.max_retries):
            try:
                r = await self._client.post(self.rpc_url, json=payload)
            except httpx.TransportError as e:
                last_error = f"{type(e).__name__}: {e}"
                logger.warning(f"{method}: connection issue (attempt {attempt + 1}/{self.max_retries}): {last_error}")
                await self._backoff(attempt)
                continue

            if r.status_code == 429 or r.status_code >= 500:
                last_error = f"HTTP {r.status_code}"
                logger.warning(f"{method}: {last_error} (attempt {attempt + 1}/{self.max_retries})")
                await self._backoff(attempt)
                continue

            try:
                r.raise_for_status()
                body = r.json()
            except (httpx.HTTPStatusError, ValueError) as e:
                raise RpcError(method, str(e)) from e

            err = body.get("error")
            if err:
                raise RpcError(method, err.get("message", "unknown error"), err.get("code"))
            return body.get("result")

        raise RpcError(method, f"failed after {self.max_retries} attempts, last error: {last_error}")

    async def _backoff(self, attempt: int) -> None:
        if attempt < self.max_retries - 1:
            await asyncio.sleep(self.retry_delay * 2 ** attempt)

    async def get_account_data(self, account: str, commitment: str = FINALITY_COMMITMENT) -> Optional[bytes]:
        """Raw account data, None if the account does not exist."""
        result = await self.call("getAccountInfo", [account, {"encoding": "base64", "commitment": commitment}])
        value = (result or {}).get("value")
        if value is None:
            return None
        return decode_account_data(value["data"])

    async def get_health(self) -> bool:
        try:
            return await self.call("getHealth") == "ok"
        except RpcError as e:
            logger.error(f"RPC health check failed: {e}")
            return False
