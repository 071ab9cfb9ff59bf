"""
Pending bonus queries.

Read-only views over deferred accruals: a customer's unprocessed bonuses
split into available (eligibility date passed) and upcoming, and the set of
records the bonus processor should pick up.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from domain.errors import ValidationError
from domain.pending_bonus import PendingBonus, PendingBonusSummary, partition_pending
from domain.phone import extract_digits
from domain.time import utc_now
from repositories.client import Client
from repositories.pending_bonus_repository import (
    list_ready_for_processing,
    list_unprocessed_by_name,
    list_unprocessed_by_phone_digits,
)


def find_by_phone(client: Client, phone: str, now: Optional[datetime] = None) -> PendingBonusSummary:
    """
    Unprocessed bonuses of the customer whose phone digits equal those of `phone`.

    Input without digits matches nothing.
    """

    now = now or utc_now()
    digits = extract_digits(phone)
    if not digits:
        return PendingBonusSummary(available=[], upcoming=[])
    return partition_pending(list_unprocessed_by_phone_digits(client, digits), now)


def find_by_name(client: Client, name: str, now: Optional[datetime] = None) -> PendingBonusSummary:
    """Unprocessed bonuses whose full name contains `name` (case-insensitive)."""

    query = name.strip()
    if not query:
        raise ValidationError("Phone number or full name is required")

    now = now or utc_now()
    return partition_pending(list_unprocessed_by_name(client, query), now)


def find_ready_for_processing(client: Client, now: datetime) -> List[PendingBonus]:
    return list_ready_for_processing(client, now)


__all__ = [
    "find_by_phone",
    "find_by_name",
    "find_ready_for_processing",
]
