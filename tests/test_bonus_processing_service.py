"""
Tests for `services/bonus_processing_service.py` and `services/pending_bonus_service.py`.

Covers contract rules:
- Only unprocessed bonuses whose available date has passed are credited.
- Each pending bonus is credited exactly once, however often the batch runs.
- A record credited by another run is skipped, not credited again.
- Flagging the record, crediting the ledger and flagging the sale happen
  together: a failure in any of them leaves the record for the next run
  and does not abort the batch.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from domain.errors import ValidationError
from fakes import seed_account, seed_product
from services import pending_bonus_service
from services.bonus_processing_service import get_processing_stats, process_pending_bonuses
from services.sale_service import SaleLineRequest, SaleRequest, record_sale

PHONE = "+7 (777) 123-12-12"


def _sell(db, policy, at, *, phone: str = PHONE, quantity: int = 2, name=None):
    if not any(row["product_id"] == "kit-1" for row in db.rows("products")):
        seed_product(db, "kit-1", "10000")
    return record_sale(
        db,
        SaleRequest(
            customer_phone=phone,
            customer_full_name=name,
            items=[SaleLineRequest(product_id="kit-1", quantity=quantity)],
        ),
        policy=policy,
        now=at,
    )


def _ledger(db, digits: str = "77771231212"):
    return next((row for row in db.rows("bonuses") if row["phone_digits"] == digits), None)


def test_nothing_ready_before_delay(db, now, policy) -> None:
    _sell(db, policy, now)

    result = process_pending_bonuses(db, now + timedelta(days=9))

    assert result.processed_count == 0
    assert result.message == "No bonuses ready for processing"
    assert _ledger(db) is None


def test_ready_bonus_is_credited_once(db, now, policy) -> None:
    """Verify day-10 crediting and that a second run processes nothing."""

    receipt = _sell(db, policy, now, name="Aigerim")
    run_at = now + timedelta(days=10)

    first = process_pending_bonuses(db, run_at)

    assert first.processed_count == 1
    assert first.message == "Processed 1 bonuses"
    assert first.processed_bonuses[0].bonus_amount == 600
    assert first.processed_bonuses[0].sale_id == receipt.sale.sale_id

    ledger = _ledger(db)
    assert ledger["total_bonuses"] == 600
    assert ledger["available_bonuses"] == 600
    assert ledger["full_name"] == "Aigerim"

    (pending,) = db.rows("pending_bonuses")
    assert pending["is_processed"] is True
    assert pending["processed_at_utc"] is not None
    assert db.rows("sales")[0]["bonus_status"] == "credited"

    second = process_pending_bonuses(db, run_at)

    assert second.processed_count == 0
    assert _ledger(db)["total_bonuses"] == 600


def test_multiple_sales_accumulate(db, now, policy) -> None:
    _sell(db, policy, now)
    _sell(db, policy, now + timedelta(days=1), quantity=1)
    _sell(db, policy, now + timedelta(days=5))

    result = process_pending_bonuses(db, now + timedelta(days=11))

    assert result.processed_count == 2
    assert _ledger(db)["total_bonuses"] == 900
    assert len([row for row in db.rows("pending_bonuses") if not row["is_processed"]]) == 1


def test_record_credited_elsewhere_is_skipped(db, now, policy) -> None:
    """Verify a concurrent run that credits first prevents a double credit."""

    _sell(db, policy, now)

    def _other_run_credits() -> None:
        db.rows("pending_bonuses")[0]["is_processed"] = True

    db.before_next("rpc", "credit_pending_bonus", _other_run_credits)

    result = process_pending_bonuses(db, now + timedelta(days=10))

    assert result.processed_count == 0
    assert result.skipped_count == 1
    assert result.message == "Processed 0 bonuses, 1 already processed"
    assert _ledger(db) is None


def test_failed_credit_is_left_pending_and_batch_continues(db, now, policy) -> None:
    """Verify one failure leaves that record pending and others are still credited."""

    _sell(db, policy, now)
    _sell(db, policy, now, phone="+7 (701) 000-00-00")
    db.fail_next("upsert", "bonuses", RuntimeError("ledger unavailable"))

    result = process_pending_bonuses(db, now + timedelta(days=10))

    assert result.processed_count == 1
    assert result.failed_count == 1
    assert result.message == "Processed 1 bonuses, 1 failed"
    unprocessed = [row for row in db.rows("pending_bonuses") if not row["is_processed"]]
    assert len(unprocessed) == 1
    assert unprocessed[0]["processed_at_utc"] is None

    retry = process_pending_bonuses(db, now + timedelta(days=10))

    assert retry.processed_count == 1
    assert all(row["is_processed"] for row in db.rows("pending_bonuses"))


def test_storage_outage_during_credit_is_retried_next_run(db, now, policy) -> None:
    """
    Verify a record whose crediting transaction broke is neither lost nor doubled.

    The ledger write fails after the record was flagged processed; the flag
    must roll back with it so the next run still credits the bonus.
    """

    _sell(db, policy, now)
    db.fail_next("upsert", "bonuses", RuntimeError("connection lost"))
    db.fail_next("update", "pending_bonuses", RuntimeError("connection lost"))

    first = process_pending_bonuses(db, now + timedelta(days=10))

    assert first.processed_count == 0
    assert first.failed_count == 1
    assert first.message == "Processed 0 bonuses, 1 failed"
    (pending,) = db.rows("pending_bonuses")
    assert pending["is_processed"] is False
    assert _ledger(db) is None
    assert db.rows("sales")[0]["bonus_status"] == "pending"

    # Each run consumes one of the queued failures.
    second = process_pending_bonuses(db, now + timedelta(days=10))
    assert second.failed_count == 1
    assert db.rows("pending_bonuses")[0]["is_processed"] is False

    third = process_pending_bonuses(db, now + timedelta(days=10))

    assert third.processed_count == 1
    assert _ledger(db)["total_bonuses"] == 600
    assert db.rows("pending_bonuses")[0]["is_processed"] is True
    assert db.rows("sales")[0]["bonus_status"] == "credited"


def test_sale_flag_failure_rolls_back_the_whole_credit(db, now, policy) -> None:
    _sell(db, policy, now)
    db.fail_next("update", "sales", RuntimeError("sales table locked"))

    result = process_pending_bonuses(db, now + timedelta(days=10))

    assert result.failed_count == 1
    assert _ledger(db) is None
    assert db.rows("pending_bonuses")[0]["is_processed"] is False
    assert db.rows("sales")[0]["bonus_status"] == "pending"

    process_pending_bonuses(db, now + timedelta(days=10))

    assert _ledger(db)["total_bonuses"] == 600
    assert db.rows("sales")[0]["bonus_status"] == "credited"


def test_credit_adds_to_existing_account(db, now, policy) -> None:
    """Verify an existing account keeps its name and used bonuses."""

    seed_account(db, PHONE, total_bonuses=1000, used_bonuses=400, full_name="Aigerim")
    _sell(db, policy, now, name="Someone else")

    process_pending_bonuses(db, now + timedelta(days=10))

    ledger = _ledger(db)
    assert ledger["total_bonuses"] == 1600
    assert ledger["used_bonuses"] == 400
    assert ledger["available_bonuses"] == 1200
    assert ledger["full_name"] == "Aigerim"
    assert len(db.rows("bonuses")) == 1


def test_processing_stats(db, now, policy) -> None:
    _sell(db, policy, now)
    _sell(db, policy, now + timedelta(days=5))
    _sell(db, policy, now, phone="+7 (701) 000-00-00", quantity=1)
    process_pending_bonuses(db, now + timedelta(days=10))
    _sell(db, policy, now + timedelta(days=10), phone="+7 (701) 000-00-00", quantity=1)

    stats = get_processing_stats(db, now + timedelta(days=12))

    assert stats.total_processed == 2
    assert stats.total_pending == 2
    assert stats.ready_for_processing == 0
    assert stats.total_pending_amount == 900
    assert [c.total_bonuses for c in stats.pending_customers] == [600, 300]


def test_pending_lookup_by_phone_splits_available_and_upcoming(db, now, policy) -> None:
    _sell(db, policy, now)
    _sell(db, policy, now + timedelta(days=5), quantity=1)

    summary = pending_bonus_service.find_by_phone(db, "7 777 123 12 12", now + timedelta(days=10))

    assert summary.total_available == 600
    assert summary.total_upcoming == 300
    assert pending_bonus_service.find_by_phone(db, "87771231212", now).available == []
    assert pending_bonus_service.find_by_phone(db, "", now).upcoming == []


def test_pending_lookup_by_name(db, now, policy) -> None:
    _sell(db, policy, now, name="Aigerim Nurlanovna")

    summary = pending_bonus_service.find_by_name(db, "nurlan", now)

    assert summary.total_upcoming == 600

    with pytest.raises(ValidationError):
        pending_bonus_service.find_by_name(db, " ", now)
