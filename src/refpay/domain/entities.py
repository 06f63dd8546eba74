"""Checkout domain entities: Product, PaymentIntent and CheckoutSession."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from ..crypto.keys import PublicKey


class Product(BaseModel):
    """A catalog entry priced in whole coins."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0)


class ValidityAnchor(BaseModel):
    """A finalized blockhash and, when known, the last block height that accepts it."""

    model_config = ConfigDict(frozen=True)

    blockhash: str
    last_valid_block_height: Optional[int] = None


class PaymentIntent(BaseModel):
    """What a single checkout attempt asks the buyer to pay."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    amount: Decimal
    recipient: PublicKey
    reference: PublicKey
    fee_payer: PublicKey
    validity_anchor: ValidityAnchor
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_serializer("recipient", "reference", "fee_payer")
    def serialize_key(self, value: PublicKey) -> str:
        return str(value)

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return value.isoformat()


class CheckoutStatus(str, Enum):
    IDLE = "idle"
    AWAITING_WALLET = "awaiting_wallet"
    BUILDING_TRANSACTION = "building_transaction"
    AWAITING_SIGNATURE = "awaiting_signature"
    BROADCASTING = "broadcasting"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        CheckoutStatus.CONFIRMED,
        CheckoutStatus.FAILED,
        CheckoutStatus.EXPIRED,
        CheckoutStatus.CANCELLED,
    }
)


class CheckoutSession(BaseModel):
    """Client-side state of one checkout attempt."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: UUID = Field(default_factory=uuid4)
    reference: PublicKey
    status: CheckoutStatus = CheckoutStatus.IDLE
    intent: Optional[PaymentIntent] = None
    signature: Optional[str] = None
    last_error: Optional[Exception] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def mark(self, status: CheckoutStatus, error: Optional[Exception] = None) -> None:
        self.status = status
        if error is not None:
            self.last_error = error
        self.updated_at = datetime.now(timezone.utc)


class SignatureInfo(BaseModel):
    """A transaction signature as listed for an address by the ledger."""

    signature: str
    slot: int
    err: Optional[Any] = None
    confirmation_status: Optional[str] = Field(None, alias="confirmationStatus")
    block_time: Optional[int] = Field(None, alias="blockTime")

    model_config = ConfigDict(populate_by_name=True)

    @property
    def succeeded(self) -> bool:
        return self.err is None
