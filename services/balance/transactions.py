from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, conint, field_validator

COMMITMENT_HASH_SIZE = 32


class _TxModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)


class CommitmentMetadata(_TxModel):
    """
    Locally cached data for the commitment a send produced (normally
    decrypted from client storage). Untrusted until its hash is checked.
    """
    nonce: conint(ge=0) = Field(..., description="Nonce of the transaction that produced the commitment.")
    balance: conint(ge=0) = Field(..., description="Private balance after that transaction (smallest unit).")
    token_type: str = Field(..., description="Token symbol, e.g. LAMPORTS or USDC.")
    assoc_comm_index: conint(ge=0) = Field(..., description="Tree index the commitment was associated with.")


class PartialTopupTx(_TxModel):
    tx_type: Literal["TOPUP"] = "TOPUP"
    nonce: conint(ge=0)
    token_type: str
    amount: conint(ge=0) = Field(..., description="Amount moved into the private balance.")
    merkle_start_index: conint(ge=0) = Field(..., description="Leaf index at/after which the commitment lands.")


class PartialSendTx(_TxModel):
    tx_type: Literal["SEND"] = "SEND"
    nonce: conint(ge=0)
    token_type: str
    amount: conint(ge=0) = Field(..., description="Sent amount incl. extra fee and token account rent.")
    fee: conint(ge=0) = Field(..., description="Total fee excl. extra fee and token account rent.")
    commitment_hash: bytes = Field(..., description="Commitment hash recorded with the submitted tx.")
    merkle_start_index: Optional[conint(ge=0)] = None
    metadata: Optional[CommitmentMetadata] = None

    @field_validator("commitment_hash", mode="before")
    @classmethod
    def _commitment_hash_bytes(cls, v: Any) -> bytes:
        if isinstance(v, str):
            v = bytes.fromhex(v[2:] if v.startswith("0x") else v)
        v = bytes(v)
        if len(v) != COMMITMENT_HASH_SIZE:
            raise ValueError(f"commitment_hash must be {COMMITMENT_HASH_SIZE} bytes, got {len(v)}")
        return v


PrivateTx = Annotated[Union[PartialTopupTx, PartialSendTx], Field(discriminator="tx_type")]

_PRIVATE_TX_ADAPTER: TypeAdapter = TypeAdapter(PrivateTx)


def parse_private_tx(data: Dict[str, Any]) -> Union[PartialTopupTx, PartialSendTx]:
    """Validate a raw history record into the matching transaction model."""
    return _PRIVATE_TX_ADAPTER.validate_python(data)
