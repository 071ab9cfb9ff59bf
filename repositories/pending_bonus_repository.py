"""
Pending bonus repository (persistence).

Stores deferred bonus accruals. Crediting a record goes through the
`credit_pending_bonus` PostgreSQL function (see scripts/schema.sql), which in
one transaction:
- flips is_processed only when it is still False,
- adds the amount to the customer's ledger row (creating it if needed),
- marks the originating sale credited.

Either all three happen or none do, so a failed credit leaves the record
unprocessed for the next run and two concurrent runs never both credit it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Mapping, Optional
from uuid import UUID

from domain.pending_bonus import PendingBonus
from domain.phone import extract_digits
from repositories.client import Client, call_rpc, fetch_rows
from repositories.timestamps import (
    parse_optional_utc_datetime,
    parse_utc_datetime,
    to_iso_utc,
)

# Supabase table name for pending bonuses.
# Keep this aligned with your database schema.
_PENDING_BONUSES_TABLE: str = "pending_bonuses"

_CREDIT_FUNCTION: str = "credit_pending_bonus"

ALREADY_PROCESSED: str = "ALREADY_PROCESSED"


@dataclass(frozen=True, slots=True)
class AtomicCreditResult:
    """Result of the credit_pending_bonus database function."""

    success: bool
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    total_bonuses: Optional[int] = None
    available_bonuses: Optional[int] = None


def _row_to_pending_bonus(row: Mapping[str, Any]) -> PendingBonus:
    """Convert a Supabase row into a PendingBonus."""

    return PendingBonus(
        pending_bonus_id=UUID(str(row["pending_bonus_id"])),
        phone_number=str(row["phone_number"]),
        full_name=row.get("full_name"),
        sale_id=UUID(str(row["sale_id"])),
        bonus_amount=int(row["bonus_amount"]),
        available_date=parse_utc_datetime(row["available_date_utc"]),
        is_processed=bool(row.get("is_processed", False)),
        created_at=parse_optional_utc_datetime(row.get("created_at_utc")),
        processed_at=parse_optional_utc_datetime(row.get("processed_at_utc")),
    )


def pending_bonus_payload(pending: PendingBonus) -> dict[str, Any]:
    """Row for a new pending bonus, as stored in the pending_bonuses table."""

    return {
        "pending_bonus_id": str(pending.pending_bonus_id),
        "phone_number": pending.phone_number,
        "phone_digits": extract_digits(pending.phone_number),
        "full_name": pending.full_name,
        "sale_id": str(pending.sale_id),
        "bonus_amount": pending.bonus_amount,
        "available_date_utc": to_iso_utc(pending.available_date, name="available_date"),
        "is_processed": pending.is_processed,
        "created_at_utc": to_iso_utc(pending.created_at, name="created_at") if pending.created_at else None,
        "processed_at_utc": None,
    }


def list_unprocessed_by_phone_digits(client: Client, phone_digits: str) -> List[PendingBonus]:
    """Unprocessed pending bonuses whose phone digits equal `phone_digits`."""

    rows = fetch_rows(
        client.table(_PENDING_BONUSES_TABLE)
        .select("*")
        .eq("is_processed", False)
        .eq("phone_digits", phone_digits)
        .order("available_date_utc"),
        action="list pending bonuses",
    )
    return [_row_to_pending_bonus(row) for row in rows]


def list_unprocessed_by_name(client: Client, name: str) -> List[PendingBonus]:
    """Unprocessed pending bonuses whose full name contains `name` (case-insensitive)."""

    rows = fetch_rows(
        client.table(_PENDING_BONUSES_TABLE)
        .select("*")
        .eq("is_processed", False)
        .ilike("full_name", f"%{name}%")
        .order("available_date_utc"),
        action="list pending bonuses",
    )
    return [_row_to_pending_bonus(row) for row in rows]


def list_ready_for_processing(client: Client, now: datetime) -> List[PendingBonus]:
    """All records with is_processed = false AND available_date <= now."""

    rows = fetch_rows(
        client.table(_PENDING_BONUSES_TABLE)
        .select("*")
        .eq("is_processed", False)
        .lte("available_date_utc", to_iso_utc(now, name="now"))
        .order("available_date_utc"),
        action="list ready pending bonuses",
    )
    return [_row_to_pending_bonus(row) for row in rows]


def list_all_pending_bonuses(client: Client) -> List[PendingBonus]:
    rows = fetch_rows(
        client.table(_PENDING_BONUSES_TABLE).select("*"),
        action="list pending bonuses",
    )
    return [_row_to_pending_bonus(row) for row in rows]


def credit_pending_bonus_atomic(client: Client, pending_bonus_id: UUID, now: datetime) -> AtomicCreditResult:
    """
    Mark a pending bonus processed and credit its amount to the ledger atomically.

    Returns:
        AtomicCreditResult; error_code is ALREADY_PROCESSED when another run
        credited the record first

    Raises:
        RuntimeError: If the database call fails (nothing was changed)
    """

    result = call_rpc(
        client,
        _CREDIT_FUNCTION,
        {
            "p_pending_bonus_id": str(pending_bonus_id),
            "p_processed_at": to_iso_utc(now, name="now"),
        },
        action="credit pending bonus",
    )

    if not result.get("success"):
        return AtomicCreditResult(
            success=False,
            error_code=result.get("error"),
            error_message=result.get("message"),
        )

    return AtomicCreditResult(
        success=True,
        total_bonuses=result.get("total_bonuses"),
        available_bonuses=result.get("available_bonuses"),
    )


__all__ = [
    "ALREADY_PROCESSED",
    "AtomicCreditResult",
    "pending_bonus_payload",
    "list_unprocessed_by_phone_digits",
    "list_unprocessed_by_name",
    "list_ready_for_processing",
    "list_all_pending_bonuses",
    "credit_pending_bonus_atomic",
]
