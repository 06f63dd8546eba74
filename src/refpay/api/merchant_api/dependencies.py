"""FastAPI dependencies for the merchant API."""

from __future__ import annotations

from fastapi import Depends, Request

from ...application.merchant.use_cases.catalog import CatalogService
from ...application.merchant.use_cases.transaction import TransactionService
from ...domain.catalog import DEFAULT_CATALOG, Catalog
from ...domain.shared import IntentRecorder, LedgerClientProtocol
from ...envs.merchant_env import Settings
from ...infrastructure.merchant.intent_recorder import LoggingIntentRecorder


def get_app_settings(request: Request) -> Settings:
    """Settings the app was created with."""
    return request.app.state.settings


def get_ledger_client(request: Request) -> LedgerClientProtocol:
    """The process-wide ledger client opened in the app lifespan."""
    return request.app.state.ledger_client


def get_catalog() -> Catalog:
    """Get the product catalog."""
    return DEFAULT_CATALOG


def get_intent_recorder() -> IntentRecorder:
    """Get intent recorder."""
    return LoggingIntentRecorder()


def get_transaction_service(
    ledger: LedgerClientProtocol = Depends(get_ledger_client),
    catalog: Catalog = Depends(get_catalog),
    intent_recorder: IntentRecorder = Depends(get_intent_recorder),
    settings: Settings = Depends(get_app_settings),
) -> TransactionService:
    """Get transaction service."""
    return TransactionService(
        ledger=ledger,
        catalog=catalog,
        shop_address=settings.shop_public_key,
        intent_recorder=intent_recorder,
        message=settings.checkout_message,
    )


def get_catalog_service(catalog: Catalog = Depends(get_catalog)) -> CatalogService:
    """Get catalog service."""
    return CatalogService(catalog)
