"""
Domain: Bonus accrual policy.

A single source for the two business constants of the loyalty programme:
- accrual_rate: fraction of a sale total converted into bonus points
- delay_days: days between a sale and the moment its bonus may be credited

bonuses_earned = floor(total_amount * accrual_rate)
available_date = sale_date + delay_days
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_FLOOR, Decimal

from .time import require_utc_timestamp

DEFAULT_ACCRUAL_RATE = Decimal("0.03")
DEFAULT_DELAY_DAYS = 10


@dataclass(frozen=True, slots=True)
class BonusPolicy:
    accrual_rate: Decimal = DEFAULT_ACCRUAL_RATE
    delay_days: int = DEFAULT_DELAY_DAYS

    def __post_init__(self) -> None:
        if self.accrual_rate < 0 or self.accrual_rate > 1:
            raise ValueError("accrual_rate must be between 0 and 1")
        if self.delay_days < 0:
            raise ValueError("delay_days must be >= 0")

    def bonuses_for(self, total_amount: Decimal) -> int:
        """Whole bonus points earned for a sale total (rounded down)."""

        if total_amount < 0:
            raise ValueError("total_amount must be >= 0")
        return int((total_amount * self.accrual_rate).to_integral_value(rounding=ROUND_FLOOR))

    def available_date(self, sale_date: datetime) -> datetime:
        """When a bonus accrued at `sale_date` becomes creditable."""

        require_utc_timestamp("sale_date", sale_date)
        return sale_date + timedelta(days=self.delay_days)
