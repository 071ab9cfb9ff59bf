"""
Domain errors for the bonus system.

Services raise these; the API layer translates them into HTTP status codes.
Storage failures are not modelled here: repositories raise RuntimeError.
"""

from __future__ import annotations


class BonusSystemError(Exception):
    """Base class for all expected business-rule failures."""


class ValidationError(BonusSystemError):
    """Input is malformed (bad phone format, non-positive quantity, ...)."""


class NotFoundError(BonusSystemError):
    """A referenced product or customer does not exist."""


class InsufficientStockError(BonusSystemError):
    """A product cannot cover the requested quantity."""


class InsufficientBonusesError(BonusSystemError):
    """A redemption exceeds the customer's available balance."""

    def __init__(self, available: int, requested: int) -> None:
        super().__init__(
            f"Insufficient bonuses. Available: {available}, Requested: {requested}"
        )
        self.available = available
        self.requested = requested


class ConcurrencyError(BonusSystemError):
    """An optimistic update kept losing to concurrent writers."""


__all__ = [
    "BonusSystemError",
    "ValidationError",
    "NotFoundError",
    "InsufficientStockError",
    "InsufficientBonusesError",
    "ConcurrencyError",
]
