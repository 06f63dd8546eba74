from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, computed_field, field_validator

from ..crypto.keys import Keypair


def _validate_http_url(name: str, v: str) -> str:
    if not v:
        raise ValueError(f"{name} cannot be empty")
    parsed = urlparse(v)
    if parsed.scheme not in {"http", "https"}:
        raise ValueError(f"{name} must start with http:// or https://")
    if not parsed.netloc:
        raise ValueError(f"{name} must include a host")
    return v


class Settings(BaseModel):
    client_secret_key: str
    merchant_base_url: str
    ledger_rpc_url: str

    poll_interval_ms: int = 500
    poll_timeout_seconds: Optional[float] = 120.0
    poll_max_attempts: Optional[int] = None
    poll_commitment: str = "confirmed"
    verify_transfer: bool = True
    # Comma separated product=quantity pairs
    items: str = "box-of-cookies=1"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def client_public_key(self) -> str:
        """Base58 address of the buyer wallet."""
        return str(Keypair.from_secret_key(self.client_secret_key).public_key)

    @field_validator("client_secret_key")
    @classmethod
    def validate_client_secret_key(cls, v: str) -> str:
        """Validate that the secret key loads as an ed25519 keypair."""
        if not v:
            raise ValueError("Client secret key cannot be empty")
        try:
            Keypair.from_secret_key(v)
        except Exception as e:
            raise ValueError(f"Invalid client secret key: {e}") from e
        return v

    @field_validator("merchant_base_url")
    @classmethod
    def validate_merchant_base_url(cls, v: str) -> str:
        return _validate_http_url("Merchant base URL", v)

    @field_validator("ledger_rpc_url")
    @classmethod
    def validate_ledger_rpc_url(cls, v: str) -> str:
        return _validate_http_url("Ledger RPC URL", v)

    @field_validator("poll_interval_ms")
    @classmethod
    def validate_poll_interval_ms(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Poll interval must be positive")
        return v

    def keypair(self) -> Keypair:
        return Keypair.from_secret_key(self.client_secret_key)

    def selection(self) -> list[tuple[str, str]]:
        pairs = []
        for item in filter(None, (part.strip() for part in self.items.split(","))):
            product_id, _, quantity = item.partition("=")
            pairs.append((product_id.strip(), quantity.strip() or "1"))
        return pairs


def get_settings() -> Settings:
    client_secret_key = os.environ.get("CLIENT_SECRET_KEY")
    merchant_base_url = os.environ.get("CLIENT_MERCHANT_BASE_URL")
    ledger_rpc_url = os.environ.get("CLIENT_LEDGER_RPC_URL")
    if not (client_secret_key and merchant_base_url and ledger_rpc_url):
        raise ValueError(
            "CLIENT_SECRET_KEY, CLIENT_MERCHANT_BASE_URL, and CLIENT_LEDGER_RPC_URL are required"
        )

    poll_interval_str = os.environ.get("CLIENT_POLL_INTERVAL_MS")
    poll_timeout_str = os.environ.get("CLIENT_POLL_TIMEOUT_SECONDS")
    poll_max_attempts_str = os.environ.get("CLIENT_POLL_MAX_ATTEMPTS")
    verify_transfer_str = os.environ.get("CLIENT_VERIFY_TRANSFER")

    overrides: dict[str, object] = {}
    if poll_interval_str is not None:
        overrides["poll_interval_ms"] = int(poll_interval_str)
    if poll_timeout_str is not None:
        overrides["poll_timeout_seconds"] = float(poll_timeout_str) or None
    if poll_max_attempts_str is not None:
        overrides["poll_max_attempts"] = int(poll_max_attempts_str) or None
    if verify_transfer_str is not None:
        overrides["verify_transfer"] = verify_transfer_str.lower() == "true"
    commitment = os.environ.get("CLIENT_POLL_COMMITMENT")
    if commitment is not None:
        overrides["poll_commitment"] = commitment
    items = os.environ.get("CLIENT_ITEMS")
    if items is not None:
        overrides["items"] = items

    return Settings(
        client_secret_key=client_secret_key,
        merchant_base_url=merchant_base_url,
        ledger_rpc_url=ledger_rpc_url,
        **overrides,
    )
