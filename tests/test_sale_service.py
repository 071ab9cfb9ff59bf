"""
Tests for `services/sale_service.py`.

Covers contract rules:
- A sale stores a price snapshot per line and its bonus = floor(total * rate).
- One pending bonus is created per sale, available delay_days later; the
  ledger itself is not credited at sale time.
- Stock decrement, sale and pending bonus are written together or not at
  all.
- Missing products, insufficient stock and malformed input are rejected
  before anything is written.
- Sales history is newest first, paginated, and filtered by phone digits.
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from domain.errors import InsufficientStockError, NotFoundError, ValidationError
from fakes import seed_account, seed_product
from services.sale_service import SaleLineRequest, SaleRequest, list_sales, record_sale

PHONE = "+7 (777) 123-12-12"


def _request(*lines, phone: str = PHONE, name=None) -> SaleRequest:
    return SaleRequest(
        customer_phone=phone,
        customer_full_name=name,
        items=[SaleLineRequest(product_id=pid, quantity=qty) for pid, qty in lines],
    )


def _stock(db, product_id: str):
    return next(row for row in db.rows("products") if row["product_id"] == product_id)["stock_quantity"]


def test_record_sale_totals_and_pending_bonus(db, now, policy) -> None:
    """Verify a 2 x 10,000 sale: total 20,000, 600 bonuses, available in 10 days."""

    seed_product(db, "kit-1", "10000", name="Robotics kit", stock_quantity=5)

    receipt = record_sale(db, _request(("kit-1", 2), name="Aigerim"), policy=policy, now=now)

    assert receipt.sale.total_amount == Decimal("20000")
    assert receipt.sale.bonuses_earned == 600
    assert receipt.sale.bonus_available_date == now + timedelta(days=10)
    assert receipt.sale.items[0].product_name == "Robotics kit"
    assert receipt.pending_bonus.amount == 600
    assert receipt.pending_bonus.available_date == now + timedelta(days=10)

    assert _stock(db, "kit-1") == 3
    assert len(db.rows("sales")) == 1
    assert db.rows("sales")[0]["customer_phone_digits"] == "77771231212"

    (pending,) = db.rows("pending_bonuses")
    assert pending["bonus_amount"] == 600
    assert pending["is_processed"] is False
    assert pending["full_name"] == "Aigerim"
    assert pending["sale_id"] == str(receipt.sale.sale_id)


def test_record_sale_does_not_credit_ledger(db, now, policy) -> None:
    """Verify the snapshot shows the balance before the new bonus."""

    seed_product(db, "kit-1", "10000")
    seed_account(db, PHONE, total_bonuses=1000, used_bonuses=200)

    receipt = record_sale(db, _request(("kit-1", 2)), policy=policy, now=now)

    assert receipt.customer_bonuses.total_bonuses == 1000
    assert receipt.customer_bonuses.available_bonuses == 800
    assert db.rows("bonuses")[0]["total_bonuses"] == 1000


def test_record_sale_new_customer_snapshot_is_zero(db, now, policy) -> None:
    seed_product(db, "kit-1", "10000")

    receipt = record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)

    assert receipt.customer_bonuses.total_bonuses == 0
    assert receipt.customer_bonuses.available_bonuses == 0
    assert db.rows("bonuses") == []


def test_record_sale_uses_sale_price(db, now, policy) -> None:
    """Verify the sale price is charged when set."""

    seed_product(db, "kit-1", "10000", sale_price="8000")

    receipt = record_sale(db, _request(("kit-1", 2)), policy=policy, now=now)

    assert receipt.sale.items[0].price == Decimal("10000")
    assert receipt.sale.items[0].sale_price == Decimal("8000")
    assert receipt.sale.total_amount == Decimal("16000")
    assert receipt.sale.bonuses_earned == 480


def test_untracked_stock_is_not_updated(db, now, policy) -> None:
    seed_product(db, "kit-1", "500", stock_quantity=None)

    record_sale(db, _request(("kit-1", 100)), policy=policy, now=now)

    assert _stock(db, "kit-1") is None
    assert db.rows("products")[0]["in_stock"] is True


def test_sale_is_stored_in_one_database_call(db, now, policy) -> None:
    """Verify stock, sale and pending bonus are written by record_sale_atomic only."""

    seed_product(db, "kit-1", "100", stock_quantity=5)

    record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)

    writes = [call for call in db.calls if call[0] in ("insert", "update", "rpc")]
    assert writes == [("rpc", "record_sale_atomic")]


def test_missing_product_is_not_found(db, now, policy) -> None:
    seed_product(db, "kit-1", "10000", stock_quantity=5)

    with pytest.raises(NotFoundError, match="Product with ID missing not found"):
        record_sale(db, _request(("kit-1", 1), ("missing", 1)), policy=policy, now=now)

    assert db.rows("sales") == []
    assert _stock(db, "kit-1") == 5


def test_insufficient_stock_is_rejected(db, now, policy) -> None:
    seed_product(db, "kit-1", "10000", name="Robotics kit", stock_quantity=1)

    with pytest.raises(InsufficientStockError, match="Insufficient stock for product Robotics kit"):
        record_sale(db, _request(("kit-1", 2)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 1
    assert db.rows("pending_bonuses") == []


def test_repeated_lines_are_checked_together(db, now, policy) -> None:
    """Verify two lines of 2 against a stock of 3 are refused."""

    seed_product(db, "kit-1", "100", stock_quantity=3)

    with pytest.raises(InsufficientStockError):
        record_sale(db, _request(("kit-1", 2), ("kit-1", 2)), policy=policy, now=now)


def test_repeated_lines_decrement_stock_once_in_total(db, now, policy) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=5)

    record_sale(db, _request(("kit-1", 2), ("kit-1", 1)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 2


def test_out_of_stock_flag_is_respected(db, now, policy) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=None, in_stock=False)

    with pytest.raises(InsufficientStockError):
        record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)


def test_last_unit_sold_clears_in_stock(db, now, policy) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=2)

    record_sale(db, _request(("kit-1", 2)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 0
    assert db.rows("products")[0]["in_stock"] is False


def test_nothing_is_written_when_sale_insert_fails(db, now, policy) -> None:
    """Verify no stock is lost when the sale cannot be stored."""

    seed_product(db, "kit-1", "100", stock_quantity=5)
    seed_product(db, "kit-2", "200", stock_quantity=5)
    db.fail_next("insert", "sales", RuntimeError("connection reset"))

    with pytest.raises(RuntimeError):
        record_sale(db, _request(("kit-1", 2), ("kit-2", 1)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 5
    assert _stock(db, "kit-2") == 5
    assert db.rows("sales") == []
    assert db.rows("pending_bonuses") == []


def test_nothing_is_written_when_pending_bonus_insert_fails(db, now, policy) -> None:
    """Verify a sale never exists without its pending bonus."""

    seed_product(db, "kit-1", "100", stock_quantity=5)
    db.fail_next("insert", "pending_bonuses", RuntimeError("timeout"))

    with pytest.raises(RuntimeError):
        record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)

    assert db.rows("sales") == []
    assert db.rows("pending_bonuses") == []
    assert _stock(db, "kit-1") == 5

    # A retry of the same request then stores exactly one sale and one pending bonus.
    receipt = record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)

    (sale,) = db.rows("sales")
    (pending,) = db.rows("pending_bonuses")
    assert sale["sale_id"] == pending["sale_id"] == str(receipt.sale.sale_id)
    assert _stock(db, "kit-1") == 4


def test_concurrent_sale_emptying_a_product_refuses_the_whole_order(db, now, policy) -> None:
    """Verify stock taken between the check and the write refuses every line."""

    seed_product(db, "kit-1", "100", stock_quantity=5)
    seed_product(db, "kit-2", "200", name="Sensor pack", stock_quantity=5)

    def _concurrent_sale() -> None:
        next(row for row in db.rows("products") if row["product_id"] == "kit-2")["stock_quantity"] = 0

    db.before_next("rpc", "record_sale_atomic", _concurrent_sale)

    with pytest.raises(InsufficientStockError, match="Insufficient stock for product Sensor pack"):
        record_sale(db, _request(("kit-1", 2), ("kit-2", 1)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 5
    assert _stock(db, "kit-2") == 0
    assert db.rows("sales") == []
    assert db.rows("pending_bonuses") == []


def test_concurrent_change_with_enough_stock_left_still_sells(db, now, policy) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=5)

    def _concurrent_sale() -> None:
        db.rows("products")[0]["stock_quantity"] = 4

    db.before_next("rpc", "record_sale_atomic", _concurrent_sale)

    record_sale(db, _request(("kit-1", 2)), policy=policy, now=now)

    assert _stock(db, "kit-1") == 2


def test_product_deleted_before_the_write_is_not_found(db, now, policy) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=5)
    db.before_next("rpc", "record_sale_atomic", lambda: db.rows("products").clear())

    with pytest.raises(NotFoundError, match="Product with ID kit-1 not found"):
        record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)

    assert db.rows("sales") == []


@pytest.mark.parametrize(
    "request_",
    [
        _request(("kit-1", 1), phone="87771231212"),
        _request(),
        _request(("kit-1", 0)),
        _request(("", 1)),
    ],
)
def test_malformed_requests_are_rejected(db, now, policy, request_) -> None:
    seed_product(db, "kit-1", "100", stock_quantity=5)

    with pytest.raises(ValidationError):
        record_sale(db, request_, policy=policy, now=now)

    assert _stock(db, "kit-1") == 5


def test_list_sales_newest_first_with_pagination(db, now, policy) -> None:
    seed_product(db, "kit-1", "100")
    for offset in range(3):
        record_sale(db, _request(("kit-1", offset + 1)), policy=policy, now=now + timedelta(hours=offset))

    page = list_sales(db, page=1, limit=2)

    assert [sale.total_amount for sale in page.sales] == [Decimal("300"), Decimal("200")]
    assert page.total_sales == 3
    assert page.total_pages == 2
    assert page.has_next_page is True
    assert page.has_prev_page is False

    second = list_sales(db, page=2, limit=2)
    assert [sale.total_amount for sale in second.sales] == [Decimal("100")]
    assert second.has_next_page is False
    assert second.has_prev_page is True


def test_list_sales_filters_by_phone_digits(db, now, policy) -> None:
    """Verify any formatting of the same digits finds the customer's sales."""

    seed_product(db, "kit-1", "100")
    record_sale(db, _request(("kit-1", 1)), policy=policy, now=now)
    record_sale(db, _request(("kit-1", 1), phone="+7 (701) 000-00-00"), policy=policy, now=now)

    assert list_sales(db, phone="7 777 123 12 12").total_sales == 1
    assert list_sales(db, phone="87771231212").total_sales == 0
    assert list_sales(db, phone="  ").total_sales == 2


def test_list_sales_empty(db) -> None:
    page = list_sales(db)

    assert page.sales == []
    assert page.total_pages == 0
    assert page.has_next_page is False
