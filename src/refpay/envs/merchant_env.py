from __future__ import annotations

import os
from urllib.parse import urlparse

from pydantic import BaseModel, field_validator

from ..crypto.keys import PublicKey


class Settings(BaseModel):
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_workers: int = 1
    api_cors_origins: list[str] = ["*"]

    app_name: str = "RefPay"
    app_version: str = "1.0.0"

    ledger_rpc_url: str
    ledger_timeout: float = 30.0
    shop_address: str

    checkout_label: str = "Cookies Inc"
    checkout_icon: str = "https://freesvg.org/img/1370962427.png"
    checkout_message: str = "Thanks for your order! \N{COOKIE}"

    @field_validator("shop_address")
    @classmethod
    def validate_shop_address(cls, v: str) -> str:
        if not v:
            raise ValueError("Shop address cannot be empty")
        try:
            PublicKey.from_string(v)
        except ValueError as e:
            raise ValueError(f"Invalid shop address: {e}") from e
        return v

    @field_validator("ledger_rpc_url")
    @classmethod
    def validate_ledger_rpc_url(cls, v: str) -> str:
        if not v:
            raise ValueError("Ledger RPC URL cannot be empty")
        parsed = urlparse(v)
        if parsed.scheme not in {"http", "https"}:
            raise ValueError("Ledger RPC URL must start with http:// or https://")
        if not parsed.netloc:
            raise ValueError("Ledger RPC URL must include a host")
        return v

    @property
    def shop_public_key(self) -> PublicKey:
        return PublicKey.from_string(self.shop_address)


def get_settings() -> Settings:
    api_debug_str = os.environ.get("MERCHANT_API_DEBUG")
    api_cors_origins_str = os.environ.get("MERCHANT_API_CORS_ORIGINS")
    api_port_str = os.environ.get("MERCHANT_API_PORT")
    api_workers_str = os.environ.get("MERCHANT_API_WORKERS")
    ledger_timeout_str = os.environ.get("MERCHANT_LEDGER_TIMEOUT")

    shop_address = os.environ.get("MERCHANT_SHOP_ADDRESS")
    ledger_rpc_url = os.environ.get("MERCHANT_LEDGER_RPC_URL")
    if not (shop_address and ledger_rpc_url):
        raise ValueError("MERCHANT_SHOP_ADDRESS and MERCHANT_LEDGER_RPC_URL are required")

    overrides: dict[str, object] = {}
    if api_debug_str is not None:
        overrides["api_debug"] = api_debug_str.lower() == "true"
    if api_cors_origins_str is not None:
        overrides["api_cors_origins"] = api_cors_origins_str.split(",")
    if api_port_str is not None:
        overrides["api_port"] = int(api_port_str)
    if api_workers_str is not None:
        overrides["api_workers"] = int(api_workers_str)
    if ledger_timeout_str is not None:
        overrides["ledger_timeout"] = float(ledger_timeout_str)
    for field, env_name in (
        ("api_host", "MERCHANT_API_HOST"),
        ("app_name", "MERCHANT_APP_NAME"),
        ("app_version", "MERCHANT_APP_VERSION"),
        ("checkout_label", "MERCHANT_CHECKOUT_LABEL"),
        ("checkout_icon", "MERCHANT_CHECKOUT_ICON"),
        ("checkout_message", "MERCHANT_CHECKOUT_MESSAGE"),
    ):
        value = os.environ.get(env_name)
        if value is not None:
            overrides[field] = value

    return Settings(
        ledger_rpc_url=ledger_rpc_url,
        shop_address=shop_address,
        **overrides,
    )
