"""
Domain: Sale events.

A sale is an immutable snapshot of one purchase: the customer phone, the line
items with the prices in force at sale time, and the bonus accrued. Later
product price changes never affect a recorded sale.

Rules enforced here:
- A sale has at least one line item.
- item.total_price == item.unit_price * item.quantity, where unit_price is
  the sale price when one was set, else the list price.
- total_amount == sum(item.total_price).
- customer_phone is in the canonical format.

All timestamps must be passed explicitly.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple
from uuid import UUID

from .phone import INVALID_PHONE_MESSAGE, is_canonical_phone
from .time import require_utc_timestamp


class BonusStatus(str, Enum):
    PENDING = "pending"
    CREDITED = "credited"


@dataclass(frozen=True, slots=True)
class SaleItem:
    """Price snapshot of one product line."""

    product_id: str
    product_name: str
    price: Decimal
    quantity: int
    total_price: Decimal
    sale_price: Optional[Decimal] = None

    def __post_init__(self) -> None:
        if self.quantity <= 0:
            raise ValueError("quantity must be > 0")
        if self.price < 0 or (self.sale_price is not None and self.sale_price < 0):
            raise ValueError("prices must be >= 0")
        if self.total_price != self.unit_price * self.quantity:
            raise ValueError("total_price must equal unit price * quantity")

    @property
    def unit_price(self) -> Decimal:
        return self.sale_price if self.sale_price else self.price


@dataclass(frozen=True, slots=True)
class SaleRecord:
    """
    Immutable record of a completed sale.

    bonus_status is the only field that changes after creation, and only
    from PENDING to CREDITED; that change is persisted by the bonus processor
    and is not modelled as a mutation here.
    """

    sale_id: UUID
    customer_phone: str
    items: Tuple[SaleItem, ...]
    total_amount: Decimal
    bonuses_earned: int
    sale_date: datetime
    bonus_available_date: datetime
    bonus_status: BonusStatus = BonusStatus.PENDING
    customer_full_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not is_canonical_phone(self.customer_phone):
            raise ValueError(INVALID_PHONE_MESSAGE)
        if not self.items:
            raise ValueError("Sale must have at least one item")
        if self.total_amount != sum((item.total_price for item in self.items), Decimal("0")):
            raise ValueError("total_amount must equal the sum of item totals")
        if self.bonuses_earned < 0:
            raise ValueError("bonuses_earned must be >= 0")
        require_utc_timestamp("sale_date", self.sale_date)
        require_utc_timestamp("bonus_available_date", self.bonus_available_date)
