"""
Domain time utilities.

Every timestamp the bonus system stores or compares (sale dates, bonus
availability dates, ledger updates) is a timezone-aware UTC datetime.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""

    return datetime.now(timezone.utc)


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Reject timestamps that are naive or carry a non-zero offset.

    Raises:
        ValueError: naming the offending field
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")
