from __future__ import annotations

from typing import Mapping, Optional, Type
from types import TracebackType

import httpx

from ...application.merchant.dtos import (
    BuildTransactionRequestDTO,
    BuildTransactionResponseDTO,
    ProductDTO,
    TransactionRequestMetadataDTO,
)
from ...crypto.keys import PublicKey
from ...domain.errors import TransactionRejected, TransactionRequestFailed
from ..http.http_client import AsyncHttpClient


def _error_detail(response: httpx.Response) -> str:
    try:
        return str(response.json().get("error") or response.text)
    except ValueError:
        return response.text


class MerchantClientAsync:
    """Asynchronous client for talking to the Merchant HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        # base_url is expected to already contain any API prefix (e.g. /api/v1)
        self._http = AsyncHttpClient(base_url, timeout=timeout, transport=transport)

    async def get_metadata(self) -> TransactionRequestMetadataDTO:
        resp = await self._http.get("/checkout/transaction")
        return TransactionRequestMetadataDTO.model_validate(resp.json())

    async def list_products(self) -> list[ProductDTO]:
        resp = await self._http.get("/checkout/products")
        return [ProductDTO.model_validate(item) for item in resp.json()]

    async def request_transaction(
        self,
        selection: Mapping[str, int],
        reference: PublicKey,
        account: PublicKey,
    ) -> BuildTransactionResponseDTO:
        """Ask the merchant to build the transaction for ``selection``.

        Raises:
            TransactionRejected: The merchant answered 400.
            TransactionRequestFailed: Any other failure.
        """
        params = [(product_id, str(qty)) for product_id, qty in selection.items()]
        params.append(("reference", str(reference)))
        body = BuildTransactionRequestDTO(account=str(account))
        try:
            resp = await self._http.post(
                "/checkout/transaction", json=body.model_dump(), params=params
            )
            return BuildTransactionResponseDTO.model_validate(resp.json())
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            if e.response.status_code == 400:
                raise TransactionRejected(detail) from e
            raise TransactionRequestFailed(
                f"Merchant returned {e.response.status_code}: {detail}"
            ) from e
        except httpx.RequestError as e:
            raise TransactionRequestFailed(f"Could not reach merchant: {e}") from e
        except ValueError as e:
            raise TransactionRequestFailed("Merchant returned a malformed body") from e

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "MerchantClientAsync":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        await self.aclose()
