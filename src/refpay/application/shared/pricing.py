"""Pure pricing functions.

Amounts stay in ``Decimal`` from the catalog down to the base-unit integer
placed in the transaction; no float ever touches them.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Final, Iterable, Mapping

from ...domain.catalog import Catalog
from ...domain.errors import InexactAmount, InvalidSelection, ZeroAmount

LAMPORTS_PER_COIN: Final[int] = 10**9

# Query parameters that are never product ids.
RESERVED_PARAMS: Final[frozenset[str]] = frozenset({"reference"})


def parse_selection(params: Iterable[tuple[str, str]]) -> dict[str, int]:
    """Turn repeated ``product=quantity`` query parameters into a selection.

    Repeated ids are summed.

    Raises:
        InvalidSelection: If a quantity is not a non-negative integer.
    """
    selection: dict[str, int] = {}
    for key, raw in params:
        if key in RESERVED_PARAMS:
            continue
        try:
            quantity = int(raw)
        except (TypeError, ValueError):
            raise InvalidSelection(f"Quantity for {key!r} must be an integer")
        if quantity < 0:
            raise InvalidSelection(f"Quantity for {key!r} cannot be negative")
        selection[key] = selection.get(key, 0) + quantity
    return selection


def calculate_amount(selection: Mapping[str, int], catalog: Catalog) -> Decimal:
    """Total price of a selection in whole coins.

    Raises:
        InvalidSelection: If a product id is unknown or a quantity is negative.
        ZeroAmount: If the total is exactly zero.
    """
    total = Decimal(0)
    for product_id, quantity in selection.items():
        product = catalog.get(product_id)
        if product is None:
            raise InvalidSelection(f"Unknown product: {product_id}")
        if quantity < 0:
            raise InvalidSelection(f"Quantity for {product_id!r} cannot be negative")
        total += product.price * quantity
    if total == 0:
        raise ZeroAmount("Can't checkout with charge of 0")
    return total


def to_base_units(amount: Decimal) -> int:
    """Convert whole coins to lamports. Refuses to round.

    Raises:
        InexactAmount: If the amount has a fraction of a lamport.
        ZeroAmount: If the amount is zero or negative.
    """
    if amount <= 0:
        raise ZeroAmount("Amount must be positive")
    try:
        units = amount * LAMPORTS_PER_COIN
        whole = units.to_integral_value()
    except InvalidOperation as e:
        raise InexactAmount(f"Amount {amount} is not a number") from e
    if units != whole:
        raise InexactAmount(
            f"Amount {amount} is not a whole number of base units"
        )
    return int(whole)


def from_base_units(lamports: int) -> Decimal:
    return Decimal(lamports) / LAMPORTS_PER_COIN
