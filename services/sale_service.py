"""
Sale service for recording purchases.

Handles:
- Validation of the customer phone and line items
- Price snapshot per line (sale price when set, else list price)
- Stock decrement, sale and pending bonus stored in one transaction
- One pending bonus per sale (credited later by the bonus processor)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from math import ceil
from typing import Dict, List, Optional, Tuple
from uuid import uuid4

from domain.bonus_policy import BonusPolicy
from domain.errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from domain.pending_bonus import PendingBonus
from domain.phone import INVALID_PHONE_MESSAGE, extract_digits, is_canonical_phone
from domain.product import Product
from domain.sale import SaleItem, SaleRecord
from domain.time import utc_now
from repositories.bonus_repository import get_account_by_phone_digits
from repositories.client import Client
from repositories.product_repository import get_product_by_id
from repositories.sale_repository import (
    AtomicSaleResult,
    list_sales as list_sale_records,
    record_sale_atomic,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SaleLineRequest:
    product_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class SaleRequest:
    """
    Request to record a sale.

    customer_phone must be in the canonical format +7 (XXX) XXX-XX-XX.
    """
    customer_phone: str
    items: List[SaleLineRequest]
    customer_full_name: Optional[str] = None


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Customer balance at the time of the sale (zeros for a new customer)."""
    total_bonuses: int = 0
    used_bonuses: int = 0
    available_bonuses: int = 0


@dataclass(frozen=True, slots=True)
class PendingBonusInfo:
    amount: int
    available_date: datetime


@dataclass(frozen=True, slots=True)
class SaleReceipt:
    """
    Result of a recorded sale.

    sale: the stored sale
    customer_bonuses: ledger balance before the new bonus is credited
    pending_bonus: amount and date at which the new bonus becomes creditable
    """
    sale: SaleRecord
    customer_bonuses: LedgerSnapshot
    pending_bonus: PendingBonusInfo


@dataclass(frozen=True, slots=True)
class SalePage:
    sales: List[SaleRecord]
    current_page: int
    total_pages: int
    total_sales: int

    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.current_page > 1


def _validate_request(request: SaleRequest) -> None:
    if not is_canonical_phone(request.customer_phone):
        raise ValidationError(INVALID_PHONE_MESSAGE)
    if not request.items:
        raise ValidationError("Customer phone and items are required")
    for line in request.items:
        if not line.product_id or line.quantity <= 0:
            raise ValidationError("Each item must have productId and positive quantity")


def _requested_quantities(request: SaleRequest) -> Dict[str, int]:
    """Total quantity per product; repeated lines for one product are added up."""

    quantities: Dict[str, int] = {}
    for line in request.items:
        quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity
    return quantities


def _load_products(client: Client, quantities: Dict[str, int]) -> Dict[str, Product]:
    """Fetch every referenced product and check it can cover the requested quantity."""

    products: Dict[str, Product] = {}
    for product_id, quantity in quantities.items():
        product = get_product_by_id(client, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        if not product.can_supply(quantity):
            raise InsufficientStockError(f"Insufficient stock for product {product.name}")
        products[product_id] = product

    return products


def _build_items(request: SaleRequest, products: Dict[str, Product]) -> Tuple[SaleItem, ...]:
    items: List[SaleItem] = []
    for line in request.items:
        product = products[line.product_id]
        items.append(SaleItem(
            product_id=product.product_id,
            product_name=product.name,
            price=product.price,
            sale_price=product.sale_price,
            quantity=line.quantity,
            total_price=product.unit_price * line.quantity,
        ))
    return tuple(items)


def _raise_for_refused_sale(result: AtomicSaleResult, products: Dict[str, Product]) -> None:
    """Translate a refused record_sale_atomic call into the matching domain error."""

    product = products.get(result.product_id or "")
    if result.error_code == "INSUFFICIENT_STOCK":
        name = product.name if product is not None else result.product_id
        raise InsufficientStockError(f"Insufficient stock for product {name}")
    if result.error_code == "PRODUCT_NOT_FOUND":
        raise NotFoundError(f"Product with ID {result.product_id} not found")
    raise RuntimeError(f"Failed to record sale: {result.error_message or result.error_code}")


def record_sale(
    client: Client,
    request: SaleRequest,
    *,
    policy: BonusPolicy,
    now: Optional[datetime] = None,
) -> SaleReceipt:
    """
    Record a sale and seed its pending bonus.

    Process:
    1. Validate phone format and line items
    2. Load every product and check stock for the whole order
    3. In one database transaction (record_sale_atomic): decrement tracked
       stock, persist the sale and persist one pending bonus available
       `policy.delay_days` after the sale

    Step 3 is all-or-nothing: a refused or failed call leaves stock, sales
    and pending bonuses untouched. The ledger is not credited here.

    Args:
        client: Supabase client
        request: SaleRequest with phone, optional name, and line items
        policy: Accrual rate and crediting delay
        now: Sale timestamp (UTC); defaults to the current time

    Returns:
        SaleReceipt with the sale, current ledger snapshot and pending bonus

    Raises:
        ValidationError: Malformed phone or items
        NotFoundError: A product does not exist
        InsufficientStockError: A product cannot cover its quantity (also
            when a concurrent sale took the stock after step 2)
        RuntimeError: The database call failed

    Example:
        request = SaleRequest(
            customer_phone="+7 (777) 123-12-12",
            items=[SaleLineRequest(product_id="kit-1", quantity=2)],
        )
        receipt = record_sale(client, request, policy=BonusPolicy())
        print(receipt.sale.total_amount, receipt.pending_bonus.available_date)
    """
    _validate_request(request)

    now = now or utc_now()
    quantities = _requested_quantities(request)
    products = _load_products(client, quantities)
    items = _build_items(request, products)

    total_amount = sum((item.total_price for item in items), Decimal("0"))
    full_name = (request.customer_full_name or "").strip() or None

    sale = SaleRecord(
        sale_id=uuid4(),
        customer_phone=request.customer_phone,
        customer_full_name=full_name,
        items=items,
        total_amount=total_amount,
        bonuses_earned=policy.bonuses_for(total_amount),
        sale_date=now,
        bonus_available_date=policy.available_date(now),
    )
    pending = PendingBonus(
        pending_bonus_id=uuid4(),
        phone_number=sale.customer_phone,
        full_name=full_name,
        sale_id=sale.sale_id,
        bonus_amount=sale.bonuses_earned,
        available_date=sale.bonus_available_date,
        created_at=now,
    )

    result = record_sale_atomic(client, sale, pending, quantities)
    if not result.success:
        logger.warning(
            "Sale for %s refused: %s %s",
            sale.customer_phone, result.error_code, result.product_id or "",
        )
        _raise_for_refused_sale(result, products)

    logger.info(
        "Recorded sale %s for %s: total %s, %s bonuses available on %s",
        sale.sale_id, sale.customer_phone, sale.total_amount,
        sale.bonuses_earned, sale.bonus_available_date.date().isoformat(),
    )

    account = get_account_by_phone_digits(client, extract_digits(sale.customer_phone))
    snapshot = LedgerSnapshot()
    if account is not None:
        snapshot = LedgerSnapshot(
            total_bonuses=account.total_bonuses,
            used_bonuses=account.used_bonuses,
            available_bonuses=account.available_bonuses,
        )

    return SaleReceipt(
        sale=sale,
        customer_bonuses=snapshot,
        pending_bonus=PendingBonusInfo(amount=pending.bonus_amount, available_date=pending.available_date),
    )


def list_sales(
    client: Client,
    *,
    phone: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
) -> SalePage:
    """
    List sales newest first with pagination.

    A non-blank `phone` restricts the list to sales whose customer phone has
    the same digits.
    """

    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")

    phone_digits = extract_digits(phone) if phone and phone.strip() else None
    sales, total = list_sale_records(
        client,
        phone_digits=phone_digits,
        offset=(page - 1) * limit,
        limit=limit,
    )

    return SalePage(
        sales=sales,
        current_page=page,
        total_pages=ceil(total / limit),
        total_sales=total,
    )


__all__ = [
    "SaleLineRequest",
    "SaleRequest",
    "LedgerSnapshot",
    "PendingBonusInfo",
    "SaleReceipt",
    "SalePage",
    "record_sale",
    "list_sales",
]
