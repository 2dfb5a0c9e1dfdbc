"""
Transaction Models

Two families of models live here:

1. Transaction - the immutable record appended to a user's log.
2. Transaction requests - what a caller asks the ledger to do.
   One model per kind, joined into a discriminated union, so that
   invalid combinations (a send with no recipient) fail validation
   instead of reaching the ledger.

DESIGN DECISION: Amounts are Decimal everywhere. Floats never touch
a balance.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Kinds of ledger movement."""
    SEND = "send"
    RECEIVE = "receive"
    TOPUP = "topup"
    REFUND = "refund"

    @property
    def is_debit(self) -> bool:
        """Only a send takes money out of the wallet."""
        return self is TransactionType.SEND


class TransactionStatus(str, Enum):
    """
    Settlement status.

    The engine settles synchronously and always writes COMPLETED.
    PENDING and FAILED are reserved for asynchronous settlement.
    """
    COMPLETED = "completed"
    PENDING = "pending"
    FAILED = "failed"


# =============================================================================
# LEDGER RECORD
# =============================================================================

class Transaction(BaseModel):
    """
    A single entry in a user's transaction log.

    CRITICAL: Transactions are never mutated or deleted once written.
    `total` is stored for display only; the balance rule lives in
    `net_effect`.
    """
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
    )

    id: str = Field(..., min_length=1)
    user_id: str = Field(
        ...,
        alias="userId",
        min_length=1,
        description="Owning user"
    )
    type: TransactionType
    counterparty: Optional[str] = Field(
        default=None,
        description="Recipient or source label, stored as given"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Face amount of the operation"
    )
    fee: Decimal = Field(
        ...,
        ge=0,
        description="Fee charged, fixed at creation"
    )
    total: Decimal = Field(
        ...,
        description="amount + fee for a send, amount - fee otherwise"
    )
    note: Optional[str] = None
    status: TransactionStatus = Field(
        default=TransactionStatus.COMPLETED,
    )
    created_at: datetime = Field(
        ...,
        alias="createdAt",
        description="Creation time (UTC), primary sort key"
    )
    sequence: int = Field(
        default=0,
        ge=0,
        description="Per-user insertion counter, breaks created_at ties"
    )

    @property
    def net_effect(self) -> Decimal:
        """Signed change this transaction applied to the owner's balance."""
        if self.type.is_debit:
            return -(self.amount + self.fee)
        return self.amount - self.fee

    def to_storage_dict(self) -> dict:
        """Convert to the JSON-safe dict stored in the user's log."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# =============================================================================
# REQUESTS (closed sum type over the four kinds)
# =============================================================================

class _TransactionRequestBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(
        ...,
        ge=0,
        description="Face amount; must not be negative"
    )
    fee: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Explicit fee; computed from the fee schedule when omitted"
    )
    note: Optional[str] = None

    @property
    def transaction_type(self) -> TransactionType:
        return TransactionType(self.type)


class SendRequest(_TransactionRequestBase):
    """Money leaving the wallet. A recipient is mandatory."""
    type: Literal["send"] = "send"
    counterparty: str = Field(
        ...,
        description="Recipient name or id"
    )

    @field_validator("counterparty")
    @classmethod
    def validate_counterparty(cls, v: str) -> str:
        """A recipient must have visible characters; the value is kept as given."""
        if not v.strip():
            raise ValueError("a send needs a recipient")
        return v


class ReceiveRequest(_TransactionRequestBase):
    """Money arriving from another party."""
    type: Literal["receive"] = "receive"
    counterparty: Optional[str] = None


class TopUpRequest(_TransactionRequestBase):
    """Funding the wallet from an external source."""
    type: Literal["topup"] = "topup"
    counterparty: Optional[str] = None


class RefundRequest(_TransactionRequestBase):
    """Money returned for an earlier payment."""
    type: Literal["refund"] = "refund"
    counterparty: Optional[str] = None


TransactionRequest = Annotated[
    Union[SendRequest, ReceiveRequest, TopUpRequest, RefundRequest],
    Field(discriminator="type"),
]
