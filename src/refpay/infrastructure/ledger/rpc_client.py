"""Async JSON-RPC client for the ledger.

Raw httpx calls against the JSON-RPC 2.0 endpoint. One instance is shared by
every component of a process; it holds no per-checkout state.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any, Optional, Type
from types import TracebackType

import httpx
from pydantic import ValidationError

from ...crypto.keys import PublicKey
from ...domain.entities import SignatureInfo, ValidityAnchor
from ...domain.errors import (
    LedgerRPCError,
    LedgerUnavailable,
    ReferenceNotFound,
    StaleTransaction,
)
from ..http.http_client import AsyncHttpClient

logger = logging.getLogger(__name__)

BLOCKHASH_NOT_FOUND = "BlockhashNotFound"


def _is_stale_blockhash_error(error: LedgerRPCError) -> bool:
    if BLOCKHASH_NOT_FOUND in str(error.data):
        return True
    return "blockhash not found" in str(error).lower()


class LedgerClient:
    """Ledger queries used by the merchant and the checkout client."""

    def __init__(
        self,
        rpc_url: str,
        timeout: float = 30.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._http = AsyncHttpClient(rpc_url, timeout=timeout, transport=transport)
        self._ids = itertools.count(1)

    async def _rpc(self, method: str, params: Optional[list[Any]] = None) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        try:
            resp = await self._http.post("", json=payload)
            data = resp.json()
        except httpx.HTTPStatusError as e:
            raise LedgerUnavailable(
                f"{method} failed with HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise LedgerUnavailable(f"Could not reach ledger for {method}: {e}") from e
        except ValueError as e:
            raise LedgerUnavailable(f"{method} returned a non-JSON body") from e

        if not isinstance(data, dict):
            raise LedgerUnavailable(f"{method} returned a malformed response")
        if "error" in data:
            error = data["error"] or {}
            raise LedgerRPCError(
                error.get("message", "Unknown RPC error"),
                code=error.get("code"),
                data=error.get("data"),
            )
        if "result" not in data:
            raise LedgerUnavailable(f"{method} response has no result")
        return data["result"]

    async def get_latest_blockhash(self, commitment: str = "finalized") -> ValidityAnchor:
        result = await self._rpc("getLatestBlockhash", [{"commitment": commitment}])
        try:
            value = result["value"]
            return ValidityAnchor(
                blockhash=value["blockhash"],
                last_valid_block_height=value["lastValidBlockHeight"],
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise LedgerUnavailable("getLatestBlockhash returned a malformed value") from e

    async def get_block_height(self, commitment: str = "confirmed") -> int:
        result = await self._rpc("getBlockHeight", [{"commitment": commitment}])
        if not isinstance(result, int):
            raise LedgerUnavailable("getBlockHeight returned a malformed value")
        return result

    async def find_reference(
        self, reference: PublicKey, commitment: str = "confirmed"
    ) -> SignatureInfo:
        # Newest first; the last entry is the oldest transaction for this key.
        result = await self._rpc(
            "getSignaturesForAddress",
            [str(reference), {"commitment": commitment, "limit": 1000}],
        )
        if not isinstance(result, list):
            raise LedgerUnavailable("getSignaturesForAddress returned a malformed value")
        if not result:
            raise ReferenceNotFound(f"No transaction references {reference}")
        try:
            return SignatureInfo.model_validate(result[-1])
        except ValidationError as e:
            raise LedgerUnavailable("getSignaturesForAddress returned a malformed entry") from e

    async def get_transaction(
        self, signature: str, commitment: str = "confirmed"
    ) -> Optional[dict[str, Any]]:
        result = await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "commitment": commitment,
                    "encoding": "json",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is not None and not isinstance(result, dict):
            raise LedgerUnavailable("getTransaction returned a malformed value")
        return result

    async def send_transaction(self, wire_b64: str) -> str:
        try:
            result = await self._rpc(
                "sendTransaction",
                [
                    wire_b64,
                    {
                        "encoding": "base64",
                        "skipPreflight": False,
                        "preflightCommitment": "confirmed",
                    },
                ],
            )
        except LedgerRPCError as e:
            if _is_stale_blockhash_error(e):
                raise StaleTransaction(str(e)) from e
            raise
        logger.info("Transaction sent: %s", result)
        return result

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
