"""Read-only product price table."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterator, Mapping, Optional

from .entities import Product


class Catalog:
    """Immutable lookup of products by id."""

    def __init__(self, products: list[Product]) -> None:
        by_id: dict[str, Product] = {}
        for product in products:
            if product.id in by_id:
                raise ValueError(f"Duplicate product id: {product.id}")
            by_id[product.id] = product
        self._products: Mapping[str, Product] = by_id

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    def __iter__(self) -> Iterator[Product]:
        return iter(self._products.values())

    def __len__(self) -> int:
        return len(self._products)


DEFAULT_PRODUCTS = [
    Product(
        id="box-of-cookies",
        name="Box of Cookies",
        description="Just a basic box of cookies",
        price=Decimal("0.05"),
    ),
    Product(
        id="basket-of-cookies",
        name="Basket of Cookies",
        description="A basket full of cookies",
        price=Decimal("0.1"),
    ),
]

DEFAULT_CATALOG = Catalog(DEFAULT_PRODUCTS)
