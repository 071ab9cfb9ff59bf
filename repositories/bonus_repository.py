"""
Bonus ledger repository (persistence).

One row per customer, keyed by the unique `phone_digits` column. Updates are
optimistic: a write only applies if the counters still hold the values the
caller read, and available_bonuses is always written as total - used.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional
from uuid import UUID

from postgrest.exceptions import APIError

from domain.bonus import BonusAccount
from domain.phone import extract_digits
from repositories.client import Client, fetch_rows
from repositories.timestamps import parse_optional_utc_datetime, to_iso_utc

# Supabase table name for bonus ledger rows.
# Keep this aligned with your database schema.
_BONUSES_TABLE: str = "bonuses"

# PostgreSQL unique_violation
_UNIQUE_VIOLATION = "23505"


def _row_to_account(row: Mapping[str, Any]) -> BonusAccount:
    """Convert a Supabase row into a BonusAccount."""

    return BonusAccount(
        bonus_id=UUID(str(row["bonus_id"])),
        phone_number=str(row["phone_number"]),
        full_name=row.get("full_name"),
        total_bonuses=int(row.get("total_bonuses") or 0),
        used_bonuses=int(row.get("used_bonuses") or 0),
        last_updated=parse_optional_utc_datetime(row.get("last_updated_utc")),
    )


def _counters(account: BonusAccount) -> dict[str, Any]:
    return {
        "full_name": account.full_name,
        "total_bonuses": account.total_bonuses,
        "used_bonuses": account.used_bonuses,
        "available_bonuses": account.available_bonuses,
        "last_updated_utc": (
            to_iso_utc(account.last_updated, name="last_updated") if account.last_updated else None
        ),
    }


def get_account_by_phone_digits(client: Client, phone_digits: str) -> Optional[BonusAccount]:
    """
    Retrieve the ledger row for a digit sequence.

    Returns:
        BonusAccount or None if the customer has no ledger row
    """

    if not phone_digits:
        return None

    rows = fetch_rows(
        client.table(_BONUSES_TABLE).select("*").eq("phone_digits", phone_digits).limit(1),
        action="get bonus account",
    )
    if not rows:
        return None
    return _row_to_account(rows[0])


def list_accounts_by_name(client: Client, name: str) -> List[BonusAccount]:
    """Ledger rows whose full name contains `name` (case-insensitive), most recent first."""

    rows = fetch_rows(
        client.table(_BONUSES_TABLE)
        .select("*")
        .ilike("full_name", f"%{name}%")
        .order("last_updated_utc", desc=True),
        action="find bonus accounts",
    )
    return [_row_to_account(row) for row in rows]


def list_accounts(client: Client) -> List[BonusAccount]:
    """Every ledger row, newest first."""

    rows = fetch_rows(
        client.table(_BONUSES_TABLE).select("*").order("created_at_utc", desc=True),
        action="list bonus accounts",
    )
    return [_row_to_account(row) for row in rows]


def insert_account(client: Client, account: BonusAccount) -> bool:
    """
    Insert a new ledger row.

    Enforces:
    - Uniqueness on phone_digits (one ledger per customer)

    Returns:
        True if inserted, False if a row for the same digits already exists
    """

    payload: dict[str, Any] = {
        "bonus_id": str(account.bonus_id),
        "phone_number": account.phone_number,
        "phone_digits": extract_digits(account.phone_number),
        "created_at_utc": (
            to_iso_utc(account.last_updated, name="last_updated") if account.last_updated else None
        ),
        **_counters(account),
    }

    try:
        fetch_rows(client.table(_BONUSES_TABLE).insert(payload), action="create bonus account")
    except APIError as e:
        if str(getattr(e, "code", "")) == _UNIQUE_VIOLATION:
            return False
        raise
    return True


def update_account(client: Client, account: BonusAccount, *, expected: BonusAccount) -> bool:
    """
    Write new counters for an existing ledger row.

    Requirements:
    - Must only update if total_bonuses and used_bonuses still equal those
      of `expected` (the row as the caller read it).

    Returns:
        True if the row was updated, False if it changed concurrently
    """

    rows = fetch_rows(
        client.table(_BONUSES_TABLE)
        .update(_counters(account))
        .eq("bonus_id", str(expected.bonus_id))
        .eq("total_bonuses", expected.total_bonuses)
        .eq("used_bonuses", expected.used_bonuses),
        action="update bonus account",
    )
    return bool(rows)


__all__ = [
    "get_account_by_phone_digits",
    "list_accounts_by_name",
    "list_accounts",
    "insert_account",
    "update_account",
]
