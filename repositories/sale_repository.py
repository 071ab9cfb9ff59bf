"""
Sale repository (persistence).

This module provides *only* persistence operations for the SaleRecord domain
entity. It does not enforce business rules (pricing, bonuses); it stores
sales through the record_sale_atomic database function and reads them back.

The customer's phone digits are stored alongside the display phone in an
indexed `customer_phone_digits` column so digit-matched lookups are plain
equality queries.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple
from uuid import UUID

from domain.pending_bonus import PendingBonus
from domain.phone import extract_digits
from domain.sale import BonusStatus, SaleItem, SaleRecord
from repositories.client import Client, call_rpc, fetch_count, fetch_rows
from repositories.pending_bonus_repository import pending_bonus_payload
from repositories.timestamps import parse_utc_datetime, to_iso_utc

# Supabase table name for sale records.
# Keep this aligned with your database schema.
_SALES_TABLE: str = "sales"

_RECORD_SALE_FUNCTION: str = "record_sale_atomic"


def _item_to_json(item: SaleItem) -> dict[str, Any]:
    return {
        "product_id": item.product_id,
        "product_name": item.product_name,
        "price": str(item.price),
        "sale_price": str(item.sale_price) if item.sale_price is not None else None,
        "quantity": item.quantity,
        "total_price": str(item.total_price),
    }


def _json_to_item(data: Mapping[str, Any]) -> SaleItem:
    sale_price = data.get("sale_price")
    return SaleItem(
        product_id=str(data["product_id"]),
        product_name=str(data.get("product_name") or ""),
        price=Decimal(str(data["price"])),
        sale_price=Decimal(str(sale_price)) if sale_price is not None else None,
        quantity=int(data["quantity"]),
        total_price=Decimal(str(data["total_price"])),
    )


def _row_to_sale(row: Mapping[str, Any]) -> SaleRecord:
    """Convert a Supabase row into a SaleRecord."""

    return SaleRecord(
        sale_id=UUID(str(row["sale_id"])),
        customer_phone=str(row["customer_phone"]),
        customer_full_name=row.get("customer_full_name"),
        items=tuple(_json_to_item(item) for item in row.get("items") or []),
        total_amount=Decimal(str(row["total_amount"])),
        bonuses_earned=int(row["bonuses_earned"]),
        bonus_status=BonusStatus(str(row.get("bonus_status", BonusStatus.PENDING.value))),
        bonus_available_date=parse_utc_datetime(row["bonus_available_date_utc"]),
        sale_date=parse_utc_datetime(row["sale_date_utc"]),
    )


@dataclass(frozen=True, slots=True)
class AtomicSaleResult:
    """Result of the record_sale_atomic database function."""

    success: bool
    sale_id: Optional[UUID] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    product_id: Optional[str] = None


def _sale_payload(sale: SaleRecord) -> dict[str, Any]:
    return {
        "sale_id": str(sale.sale_id),
        "customer_phone": sale.customer_phone,
        "customer_phone_digits": extract_digits(sale.customer_phone),
        "customer_full_name": sale.customer_full_name,
        "items": [_item_to_json(item) for item in sale.items],
        "total_amount": str(sale.total_amount),
        "bonuses_earned": sale.bonuses_earned,
        "bonus_status": sale.bonus_status.value,
        "bonus_available_date_utc": to_iso_utc(sale.bonus_available_date, name="bonus_available_date"),
        "sale_date_utc": to_iso_utc(sale.sale_date, name="sale_date"),
    }


def record_sale_atomic(
    client: Client,
    sale: SaleRecord,
    pending: PendingBonus,
    stock_changes: Mapping[str, int],
) -> AtomicSaleResult:
    """
    Store a sale with its pending bonus and decrement stock in one transaction.

    Calls the record_sale_atomic PostgreSQL function, which:
    1. Locks every product in `stock_changes` and checks availability
    2. Decrements stock_quantity for products that track it
    3. Inserts the sale row
    4. Inserts the pending bonus row
    Nothing is written unless all four steps succeed.

    Args:
        stock_changes: product_id -> total quantity sold in this sale

    Returns:
        AtomicSaleResult; error_code is PRODUCT_NOT_FOUND or
        INSUFFICIENT_STOCK (with product_id) when the sale was refused

    Raises:
        RuntimeError: If the database call fails (nothing was written)
    """

    result = call_rpc(
        client,
        _RECORD_SALE_FUNCTION,
        {
            "p_sale": _sale_payload(sale),
            "p_pending_bonus": pending_bonus_payload(pending),
            "p_stock_changes": [
                {"product_id": product_id, "quantity": quantity}
                for product_id, quantity in stock_changes.items()
            ],
        },
        action="record sale",
    )

    if not result.get("success"):
        return AtomicSaleResult(
            success=False,
            error_code=result.get("error"),
            error_message=result.get("message"),
            product_id=result.get("product_id"),
        )

    return AtomicSaleResult(success=True, sale_id=sale.sale_id)


def get_sale_by_id(client: Client, sale_id: UUID) -> Optional[SaleRecord]:
    """
    Retrieve a single sale record by its ID.

    Returns:
        SaleRecord or None if not found
    """

    rows = fetch_rows(
        client.table(_SALES_TABLE).select("*").eq("sale_id", str(sale_id)).limit(1),
        action="get sale",
    )
    if not rows:
        return None
    return _row_to_sale(rows[0])


def list_sales(
    client: Client,
    *,
    phone_digits: Optional[str] = None,
    offset: int = 0,
    limit: int = 20,
) -> Tuple[List[SaleRecord], int]:
    """
    List sales newest first, optionally restricted to one customer's digits.

    Args:
        phone_digits: Digit sequence to match exactly (None for all sales)
        offset: Number of rows to skip
        limit: Maximum number of rows to return

    Returns:
        (page of SaleRecords, total number of matching sales)
    """

    def _filtered(query: Any) -> Any:
        if phone_digits is not None:
            return query.eq("customer_phone_digits", phone_digits)
        return query

    rows = fetch_rows(
        _filtered(client.table(_SALES_TABLE).select("*"))
        .order("sale_date_utc", desc=True)
        .range(offset, offset + limit - 1),
        action="list sales",
    )
    total = fetch_count(
        _filtered(client.table(_SALES_TABLE).select("sale_id", count="exact")),
        action="count sales",
    )
    return [_row_to_sale(row) for row in rows], total


__all__ = [
    "AtomicSaleResult",
    "record_sale_atomic",
    "get_sale_by_id",
    "list_sales",
]
