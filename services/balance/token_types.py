# services/balance/token_types.py
# Token numbering as seen by the circuit. The id of a token type is its
# position in TOKEN_TYPES; order is part of the protocol, append only.
from __future__ import annotations

import enum
from typing import List

from services.balance.errors import UnknownTokenType


class TokenType(str, enum.Enum):
    LAMPORTS = "LAMPORTS"
    USDC = "USDC"
    USDT = "USDT"
    mSOL = "mSOL"
    BONK = "BONK"
    SAMO = "SAMO"
    stSOL = "stSOL"
    ORCA = "ORCA"
    RAY = "RAY"
    PYTH = "PYTH"


TOKEN_TYPES: List[TokenType] = list(TokenType)
_IDS = {t: i for i, t in enumerate(TOKEN_TYPES)}


def get_token_types() -> List[TokenType]:
    return list(TOKEN_TYPES)


def get_token_type_from_str(t: str) -> TokenType:
    try:
        return TokenType(t)
    except ValueError:
        raise UnknownTokenType(t) from None


def get_number_from_token_type(t: TokenType | str) -> int:
    """Number (16-bit uint on chain) for a token type. Inverse of get_token_type_from_number."""
    tt = t if isinstance(t, TokenType) else get_token_type_from_str(t)
    return _IDS[tt]


def get_token_type_from_number(n: int) -> TokenType:
    if not 0 <= n < len(TOKEN_TYPES):
        raise UnknownTokenType(n)
    return TOKEN_TYPES[n]
