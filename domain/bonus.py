"""
Domain: Bonus ledger account.

One account per customer phone. The balance is kept as two monotonically
growing counters:
- total_bonuses: everything ever credited
- used_bonuses: everything ever redeemed

available_bonuses == total_bonuses - used_bonuses at all times; it is derived,
never stored independently of the two counters.

Transitions return new instances; accounts are never mutated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional
from uuid import UUID

from .errors import InsufficientBonusesError, ValidationError
from .time import require_utc_timestamp


@dataclass(frozen=True, slots=True)
class BonusAccount:
    bonus_id: UUID
    phone_number: str
    total_bonuses: int = 0
    used_bonuses: int = 0
    full_name: Optional[str] = None
    last_updated: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.total_bonuses < 0 or self.used_bonuses < 0:
            raise ValueError("bonus counters must be >= 0")
        if self.used_bonuses > self.total_bonuses:
            raise ValueError("used_bonuses cannot exceed total_bonuses")
        if self.last_updated is not None:
            require_utc_timestamp("last_updated", self.last_updated)

    @property
    def available_bonuses(self) -> int:
        return self.total_bonuses - self.used_bonuses

    def credited(self, amount: int, now: datetime, full_name: Optional[str] = None) -> "BonusAccount":
        """
        Return the account with `amount` added to the total.

        An existing full name is kept; a missing one adopts `full_name`.
        """

        if amount < 0:
            raise ValidationError("Bonuses to add must be positive")
        return replace(
            self,
            total_bonuses=self.total_bonuses + amount,
            full_name=self.full_name or (full_name or None),
            last_updated=now,
        )

    def deducted(self, amount: int, now: datetime) -> "BonusAccount":
        """Return the account with `amount` redeemed from the available balance."""

        if amount <= 0:
            raise ValidationError("Bonuses to deduct must be positive")
        if amount > self.available_bonuses:
            raise InsufficientBonusesError(available=self.available_bonuses, requested=amount)
        return replace(self, used_bonuses=self.used_bonuses + amount, last_updated=now)

    def renamed(self, full_name: str, now: datetime) -> "BonusAccount":
        name = full_name.strip()
        if not name:
            raise ValidationError("Full name is required")
        return replace(self, full_name=name, last_updated=now)
