"""
Product repository (persistence).

Products are owned by the catalog; this module only reads the fields a sale
needs. Stock is decremented by the record_sale_atomic database function
together with the sale insert (see repositories/sale_repository.py).
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping, Optional

from domain.product import Product, display_name
from repositories.client import Client, fetch_rows

# Supabase table name for products.
# Keep this aligned with your database schema.
_PRODUCTS_TABLE: str = "products"


def _optional_decimal(value: Any) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _row_to_product(row: Mapping[str, Any]) -> Product:
    """Convert a Supabase row into a Product."""

    stock = row.get("stock_quantity")
    return Product(
        product_id=str(row["product_id"]),
        name=display_name(row.get("name")),
        price=Decimal(str(row["price"])),
        sale_price=_optional_decimal(row.get("sale_price")),
        in_stock=bool(row.get("in_stock", True)),
        stock_quantity=int(stock) if stock is not None else None,
    )


def get_product_by_id(client: Client, product_id: str) -> Optional[Product]:
    """
    Retrieve a single product by its ID.

    Returns:
        Product or None if not found
    """

    rows = fetch_rows(
        client.table(_PRODUCTS_TABLE).select("*").eq("product_id", product_id).limit(1),
        action="get product",
    )
    if not rows:
        return None
    return _row_to_product(rows[0])


__all__ = [
    "get_product_by_id",
]
