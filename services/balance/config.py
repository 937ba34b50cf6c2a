# services/balance/config.py
from __future__ import annotations

import os

# ===== Protocol constants (not overridable) =====
# Max number of input commitments a send circuit consumes
SEND_ARITY: int = 4
STORAGE_ACC_SEED: bytes = b"storage"

# ===== Cluster / RPC =====
DEFAULT_RPC_URLS = {
    "mainnet-beta": "https://api.mainnet-beta.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "localnet": "http://127.0.0.1:8899",
}


def rpc_url_for_cluster(cluster: str) -> str:
    try:
        return DEFAULT_RPC_URLS[cluster]
    except KeyError:
        raise ValueError(f"Unknown cluster: {cluster}") from None


def ws_url_from_rpc(rpc_url: str) -> str:
    """http(s)://host:8899 -> ws(s)://host:8900 (local validator convention), otherwise same port."""
    if rpc_url.startswith("https://"):
        return "wss://" + rpc_url[len("https://"):]
    if rpc_url.startswith("http://"):
        rest = rpc_url[len("http://"):]
        if rest.endswith(":8899"):
            rest = rest[: -len(":8899")] + ":8900"
        return "ws://" + rest
    return rpc_url


SOLANA_CLUSTER: str = os.getenv("SOLANA_CLUSTER", "devnet")
SOLANA_RPC_URL: str = os.getenv("SOLANA_RPC_URL") or DEFAULT_RPC_URLS.get(SOLANA_CLUSTER, DEFAULT_RPC_URLS["devnet"])
SOLANA_WS_URL: str = os.getenv("SOLANA_WS_URL") or ws_url_from_rpc(SOLANA_RPC_URL)

RPC_TIMEOUT_SEC: float = float(os.getenv("RPC_TIMEOUT_SEC", "10"))
RPC_MAX_RETRIES: int = int(os.getenv("RPC_MAX_RETRIES", "3"))
RPC_RETRY_DELAY_SEC: float = float(os.getenv("RPC_RETRY_DELAY_SEC", "1.0"))

# Commitment level the insertion wait listens at
FINALITY_COMMITMENT: str = os.getenv("FINALITY_COMMITMENT", "finalized")
