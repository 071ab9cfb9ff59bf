"""
Application settings.

All configuration is read from environment variables. A `.env` file next to
this module is loaded first so local development does not need exported
variables.

Environment variables:
- SUPABASE_URL: Supabase project URL (required by the storage client)
- SUPABASE_KEY: Supabase API key (server-side key only)
- BONUS_ACCRUAL_RATE: Fraction of a sale total accrued as bonuses (default: 0.03)
- BONUS_DELAY_DAYS: Days before a sale's bonus can be credited (default: 10)
- LOG_LEVEL: Root log level (default: INFO)
- BONUS_SCHEDULER_ENABLED: Run the in-process bonus job (default: false)
- BONUS_PROCESSING_CRON: Crontab for the in-process bonus job (default: "0 3 * * *")
- CORS_ALLOW_ORIGINS: Comma separated origins (default: "*")
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv

from domain.bonus_policy import BonusPolicy

env_path = Path(__file__).parent / ".env"
load_dotenv(dotenv_path=env_path)

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True, slots=True)
class Settings:
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    bonus_accrual_rate: Decimal
    bonus_delay_days: int
    log_level: str
    scheduler_enabled: bool
    processing_cron: str
    cors_allow_origins: Tuple[str, ...]

    @property
    def bonus_policy(self) -> BonusPolicy:
        return BonusPolicy(
            accrual_rate=self.bonus_accrual_rate,
            delay_days=self.bonus_delay_days,
        )


def _read_decimal(name: str, default: str) -> Decimal:
    raw = os.getenv(name, default)
    try:
        return Decimal(raw.strip())
    except InvalidOperation:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not a number") from None


def _read_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Invalid environment variable: {name}={raw!r} is not an integer") from None


def _read_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """
    Build Settings from the current environment.

    Raises:
        RuntimeError: If a variable is present but malformed
    """

    rate = _read_decimal("BONUS_ACCRUAL_RATE", "0.03")
    if rate < 0 or rate > 1:
        raise RuntimeError("Invalid environment variable: BONUS_ACCRUAL_RATE must be between 0 and 1")

    delay_days = _read_int("BONUS_DELAY_DAYS", 10)
    if delay_days < 0:
        raise RuntimeError("Invalid environment variable: BONUS_DELAY_DAYS must be >= 0")

    origins = os.getenv("CORS_ALLOW_ORIGINS", "*")

    return Settings(
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_KEY"),
        bonus_accrual_rate=rate,
        bonus_delay_days=delay_days,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        scheduler_enabled=_read_bool("BONUS_SCHEDULER_ENABLED", False),
        processing_cron=os.getenv("BONUS_PROCESSING_CRON", "0 3 * * *"),
        cors_allow_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""

    return load_settings()


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler on the root logger (idempotent)."""

    logging.basicConfig(level=level, format=_LOG_FORMAT)


__all__ = [
    "Settings",
    "load_settings",
    "get_settings",
    "configure_logging",
]
