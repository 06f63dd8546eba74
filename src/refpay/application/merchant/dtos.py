"""Data Transfer Objects for the merchant application layer."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BuildTransactionRequestDTO(BaseModel):
    """Body of a transaction request: the buyer's address."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"account": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin"}
        }
    )

    account: Optional[str] = Field(None, description="Buyer public key (base58)")


class BuildTransactionResponseDTO(BaseModel):
    """Serialized unsigned transaction handed to the buyer's wallet."""

    transaction: str = Field(..., description="Base64 wire transaction")
    message: str


class ErrorResponseDTO(BaseModel):
    error: str


class TransactionRequestMetadataDTO(BaseModel):
    """What a wallet shows before it posts the buyer's account."""

    label: str
    icon: str


class ProductDTO(BaseModel):
    id: str
    name: str
    description: Optional[str]
    price: Decimal
