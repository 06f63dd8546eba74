"""Product catalog API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ....application.merchant.dtos import ProductDTO
from ....application.merchant.use_cases.catalog import CatalogService
from ..dependencies import get_catalog_service

router = APIRouter(prefix="/checkout", tags=["products"])


@router.get("/products", response_model=list[ProductDTO])
async def list_products(
    catalog_service: CatalogService = Depends(get_catalog_service),
) -> list[ProductDTO]:
    """List the products a checkout may select."""
    return await catalog_service.list_products()
