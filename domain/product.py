"""
Domain: Product snapshot as seen by the sale recorder.

Products are managed elsewhere; the sale recorder only reads price and stock
and decrements stock. `stock_quantity is None` means stock is not tracked.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping, Optional

_NAME_LOCALE_PREFERENCE = ("ru", "en", "kk")


def display_name(name: Any) -> str:
    """
    Resolve a product name that may be a plain string or a localized mapping.

    Localized names prefer Russian, then English, then Kazakh, then any
    non-empty entry.
    """

    if isinstance(name, str):
        return name
    if isinstance(name, Mapping):
        for locale in _NAME_LOCALE_PREFERENCE:
            value = name.get(locale)
            if value:
                return str(value)
        for value in name.values():
            if value:
                return str(value)
    return ""


@dataclass(frozen=True, slots=True)
class Product:
    product_id: str
    name: str
    price: Decimal
    sale_price: Optional[Decimal] = None
    in_stock: bool = True
    stock_quantity: Optional[int] = None

    @property
    def unit_price(self) -> Decimal:
        """Price charged per unit: the sale price when one is set."""

        return self.sale_price if self.sale_price else self.price

    def can_supply(self, quantity: int) -> bool:
        if not self.in_stock:
            return False
        if self.stock_quantity is None:
            return True
        return self.stock_quantity >= quantity
