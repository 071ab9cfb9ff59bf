"""
Domain: Pending bonuses.

A pending bonus is an accrual recorded at sale time that is not yet part of
the customer's ledger. It becomes creditable once `available_date` has
passed, and is credited exactly once by the bonus processor, which flips
`is_processed` from False to True. There is no transition back.

The functions in this module are pure: they partition and aggregate records
that repositories have already loaded.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from .phone import extract_digits
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class PendingBonus:
    pending_bonus_id: UUID
    phone_number: str
    sale_id: UUID
    bonus_amount: int
    available_date: datetime
    is_processed: bool = False
    full_name: Optional[str] = None
    created_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.bonus_amount < 0:
            raise ValueError("bonus_amount must be >= 0")
        require_utc_timestamp("available_date", self.available_date)
        if self.created_at is not None:
            require_utc_timestamp("created_at", self.created_at)
        if self.processed_at is not None:
            require_utc_timestamp("processed_at", self.processed_at)

    def is_ready(self, now: datetime) -> bool:
        """Ready once the availability date has been reached."""

        return self.available_date <= now

    def is_due(self, now: datetime) -> bool:
        """Ready and not yet credited; what a processing run picks up."""

        return not self.is_processed and self.is_ready(now)


@dataclass(frozen=True, slots=True)
class PendingBonusSummary:
    """Unprocessed bonuses of one customer, split by availability."""

    available: List[PendingBonus]
    upcoming: List[PendingBonus]

    @property
    def total_available(self) -> int:
        return sum(bonus.bonus_amount for bonus in self.available)

    @property
    def total_upcoming(self) -> int:
        return sum(bonus.bonus_amount for bonus in self.upcoming)


def partition_pending(bonuses: Iterable[PendingBonus], now: datetime) -> PendingBonusSummary:
    """
    Split unprocessed bonuses into available (date passed) and upcoming.

    Processed records are ignored. Each partition is ordered by availability date.
    """

    require_utc_timestamp("now", now)
    ordered = sorted(
        (bonus for bonus in bonuses if not bonus.is_processed),
        key=lambda bonus: bonus.available_date,
    )
    return PendingBonusSummary(
        available=[bonus for bonus in ordered if bonus.is_ready(now)],
        upcoming=[bonus for bonus in ordered if not bonus.is_ready(now)],
    )


@dataclass(frozen=True, slots=True)
class PendingCustomer:
    """Roll-up of one customer's unprocessed bonuses."""

    phone_number: str
    full_name: Optional[str]
    total_bonuses: int
    total_purchases: int
    bonuses: List[PendingBonus]


@dataclass(frozen=True, slots=True)
class ProcessingStats:
    total_pending: int = 0
    total_processed: int = 0
    ready_for_processing: int = 0
    total_pending_amount: int = 0
    ready_amount: int = 0
    pending_customers: List[PendingCustomer] = field(default_factory=list)


def summarize_processing(bonuses: Iterable[PendingBonus], now: datetime) -> ProcessingStats:
    """
    Aggregate counts and amounts across all pending bonus records.

    Unprocessed records are grouped per customer by phone digits; groups are
    ordered by their total amount, largest first.
    """

    require_utc_timestamp("now", now)

    total_pending = total_processed = ready_count = 0
    pending_amount = ready_amount = 0
    groups: Dict[str, List[PendingBonus]] = {}

    for bonus in bonuses:
        if bonus.is_due(now):
            ready_count += 1
            ready_amount += bonus.bonus_amount

        if bonus.is_processed:
            total_processed += 1
            continue

        total_pending += 1
        pending_amount += bonus.bonus_amount
        groups.setdefault(extract_digits(bonus.phone_number), []).append(bonus)

    customers = []
    for members in groups.values():
        members.sort(key=lambda bonus: bonus.available_date)
        full_name = next((bonus.full_name for bonus in members if bonus.full_name), None)
        customers.append(
            PendingCustomer(
                phone_number=members[0].phone_number,
                full_name=full_name,
                total_bonuses=sum(bonus.bonus_amount for bonus in members),
                total_purchases=len(members),
                bonuses=members,
            )
        )
    customers.sort(key=lambda customer: customer.total_bonuses, reverse=True)

    return ProcessingStats(
        total_pending=total_pending,
        total_processed=total_processed,
        ready_for_processing=ready_count,
        total_pending_amount=pending_amount,
        ready_amount=ready_amount,
        pending_customers=customers,
    )
