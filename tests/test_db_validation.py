"""
Database validation tests.

This module tests a live Supabase project and verifies that:
1. Connection credentials work
2. Required tables exist
3. Repositories can write and read back their rows

Skipped unless SUPABASE_URL and SUPABASE_KEY are set. Run this first to
validate database setup before deploying.
"""

from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from dotenv import load_dotenv

# Load .env file before anything else
env_path = Path(__file__).parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

# Add parent directory to path to import repositories
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

pytestmark = pytest.mark.skipif(
    not (os.getenv("SUPABASE_URL") and os.getenv("SUPABASE_KEY")),
    reason="SUPABASE_URL / SUPABASE_KEY not set",
)

# Test rows use a phone no real customer can have (canonical format, all zeros).
TEST_PHONE = "+7 (000) 000-00-00"


def _client():
    from repositories.client import get_supabase_client
    return get_supabase_client()


@pytest.mark.parametrize("table", ["products", "sales", "pending_bonuses", "bonuses"])
def test_table_exists(table: str) -> None:
    """Verify each table exists and can be queried."""

    try:
        _client().table(table).select("*").limit(0).execute()
        print(f"\n[OK] '{table}' table exists")
    except Exception as e:
        pytest.fail(
            f"'{table}' table does not exist or cannot be accessed: {e}\n"
            f"You need to create this table in Supabase."
        )


def test_sale_and_pending_bonus_round_trip() -> None:
    """Insert a sale and its pending bonus, read them back, then clean up."""

    from domain.pending_bonus import PendingBonus
    from domain.sale import SaleItem, SaleRecord
    from repositories import pending_bonus_repository, sale_repository

    client = _client()
    sold_at = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    sale = SaleRecord(
        sale_id=uuid4(),
        customer_phone=TEST_PHONE,
        items=(SaleItem(
            product_id="validation-product",
            product_name="Validation",
            price=Decimal("100"),
            quantity=1,
            total_price=Decimal("100"),
        ),),
        total_amount=Decimal("100"),
        bonuses_earned=3,
        sale_date=sold_at,
        bonus_available_date=sold_at + timedelta(days=10),
    )
    pending = PendingBonus(
        pending_bonus_id=uuid4(),
        phone_number=TEST_PHONE,
        sale_id=sale.sale_id,
        bonus_amount=3,
        available_date=sale.bonus_available_date,
        created_at=sold_at,
    )

    try:
        result = sale_repository.record_sale_atomic(client, sale, pending, {})
        assert result.success, f"record_sale_atomic refused: {result.error_code}"

        retrieved = sale_repository.get_sale_by_id(client, sale.sale_id)
        assert retrieved is not None, "Failed to retrieve inserted sale"
        assert retrieved.total_amount == Decimal("100")

        waiting = pending_bonus_repository.list_unprocessed_by_phone_digits(client, "70000000000")
        assert any(p.pending_bonus_id == pending.pending_bonus_id for p in waiting)
        print("\n[OK] Sale and pending bonus round trip")
    finally:
        client.table("pending_bonuses").delete().eq("pending_bonus_id", str(pending.pending_bonus_id)).execute()
        client.table("sales").delete().eq("sale_id", str(sale.sale_id)).execute()
