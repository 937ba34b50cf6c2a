"""
Logging setup shared by every services.* module.

Usage:
    from services.logging_config import get_logger
    logger = get_logger("balance.manager")

Environment:
    LOG_LEVEL   DEBUG/INFO/WARNING/ERROR (default: INFO)
    LOG_FORMAT  "text" or "json" (default: text)

Secrets (seeds, nullifiers) must never be passed to a logger; commitment
hashes go through short_hash().
"""
from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone

ROOT_LOGGER_NAME = "services"

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "text").lower()

_TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str | None = None, fmt: str | None = None) -> None:
    """Install the root handler once; later calls only adjust the level."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER_NAME)
    root.setLevel((level or LOG_LEVEL).upper())
    if _configured:
        return

    handler = logging.StreamHandler(sys.stderr)
    if (fmt or LOG_FORMAT) == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def short_hash(h: bytes | str, n: int = 8) -> str:
    # first n hex chars; enough to correlate log lines
    hx = h.hex() if isinstance(h, (bytes, bytearray)) else str(h)
    return f"{hx[:n]}…" if len(hx) > n else hx
