from __future__ import annotations

from ....domain.catalog import Catalog
from ..dtos import ProductDTO


class CatalogService:
    """Service for listing products."""

    def __init__(self, catalog: Catalog):
        self.catalog = catalog

    async def list_products(self) -> list[ProductDTO]:
        return [ProductDTO(**product.model_dump()) for product in self.catalog]
