# services/balance/errors.py
from __future__ import annotations

from typing import Sequence


class CommitmentError(RuntimeError):
    """Base class for commitment lifecycle failures surfaced to callers."""


class UnknownTokenType(CommitmentError, ValueError):
    """Token type (symbol or number) is not in the token table. Caller input error."""

    def __init__(self, token_type: object):
        super().__init__(f"Unknown token type: {token_type!r}")
        self.token_type = token_type


class InvalidTransactionType(CommitmentError, TypeError):
    def __init__(self, tx: object):
        super().__init__(f"Invalid transaction type: {type(tx).__name__}")


class CommitmentMismatch(CommitmentError):
    """
    Neither cached metadata nor a replay of confirmed history reproduces
    the commitment hash recorded on the transaction. Fatal: local history
    is corrupt or the seed does not belong to this transaction.
    """

    def __init__(self, nonce: int):
        super().__init__(f"Failed to reconstruct commitment for nonce {nonce}")
        self.nonce = nonce


class ActivationIncomplete(CommitmentError):
    """The tree has no inclusion data (yet) for some commitments. Retry later."""

    def __init__(self, missing: Sequence[bytes]):
        shown = ", ".join(h.hex()[:16] for h in missing[:3])
        more = f" (+{len(missing) - 3} more)" if len(missing) > 3 else ""
        super().__init__(f"No inclusion data for {len(missing)} commitment(s): {shown}{more}")
        self.missing = list(missing)


class PendingConfirmation(CommitmentError):
    def __init__(self, nonce: int | None = None):
        msg = "Cannot create transaction while still waiting for tx to confirm"
        if nonce is not None:
            msg += f" (nonce {nonce})"
        super().__init__(msg)
        self.nonce = nonce


class TooManyActiveCommitments(CommitmentError):
    """Active set larger than the send arity; upstream invariant violated."""

    def __init__(self, count: int, arity: int):
        super().__init__(f"Invalid size for active commitments: {count} (max {arity})")
        self.count = count
        self.arity = arity
