"""Transaction request API routes (Merchant)."""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Request, status
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from ....application.merchant.dtos import (
    BuildTransactionRequestDTO,
    BuildTransactionResponseDTO,
    ErrorResponseDTO,
    TransactionRequestMetadataDTO,
)
from ....application.merchant.use_cases.transaction import TransactionService
from ....application.shared.pricing import parse_selection
from ....domain.errors import MissingAccount, PaymentValidationError
from ....envs.merchant_env import Settings
from ..dependencies import get_app_settings, get_transaction_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


transaction_requests_total = Counter(
    "transaction_requests_total",
    "Total transaction build requests processed",
    ["status"],
)

transaction_request_duration_seconds = Histogram(
    "transaction_request_duration_seconds",
    "Wall time to build a transaction",
    ["status"],
)


def _observe(outcome: str, start_time: float) -> None:
    transaction_requests_total.labels(status=outcome).inc()
    elapsed = time.perf_counter() - start_time
    transaction_request_duration_seconds.labels(status=outcome).observe(elapsed)


def _account_from(body: Any) -> Optional[str]:
    """Buyer account from the raw JSON body.

    Raises:
        MissingAccount: If the body is not an object with a string ``account``.
    """
    if body is None:
        return None
    try:
        return BuildTransactionRequestDTO.model_validate(body).account
    except ValidationError as e:
        raise MissingAccount(
            'Invalid account: expected a body of {"account": "<public key>"}'
        ) from e


@router.get("/transaction", response_model=TransactionRequestMetadataDTO)
async def get_transaction_metadata(
    settings: Settings = Depends(get_app_settings),
) -> TransactionRequestMetadataDTO:
    """Label and icon a wallet shows before posting the buyer account."""
    return TransactionRequestMetadataDTO(
        label=settings.checkout_label, icon=settings.checkout_icon
    )


@router.post(
    "/transaction",
    response_model=BuildTransactionResponseDTO,
    responses={
        status.HTTP_400_BAD_REQUEST: {"model": ErrorResponseDTO},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponseDTO},
    },
)
async def create_transaction(
    request: Request,
    body: Any = Body(None, description='{"account": "<buyer public key>"}'),
    transaction_service: TransactionService = Depends(get_transaction_service),
):
    """Build an unsigned transfer for the selected items.

    Query string: ``<product-id>=<quantity>`` pairs plus ``reference``.
    Body: ``{"account": "<buyer public key>"}``.
    """
    start_time = time.perf_counter()
    try:
        selection = parse_selection(request.query_params.multi_items())
        result = await transaction_service.create_transaction(
            selection,
            reference=request.query_params.get("reference"),
            account=_account_from(body),
        )
        _observe("success", start_time)
        return result
    except PaymentValidationError as e:
        _observe("client_error", start_time)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=ErrorResponseDTO(error=str(e)).model_dump(),
        )
    except Exception:
        _observe("server_error", start_time)
        logger.exception("Failed to create transaction")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponseDTO(error="error creating transaction").model_dump(),
        )
