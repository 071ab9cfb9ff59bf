"""
FastAPI dependencies.

The Supabase client and the bonus policy are injected into handlers here so
tests can replace them through `app.dependency_overrides`.
"""

from domain.bonus_policy import BonusPolicy
from repositories.client import Client, get_supabase_client
from settings import get_settings


def get_db() -> Client:
    """Process-wide Supabase client (created on first request)."""
    return get_supabase_client()


def get_bonus_policy() -> BonusPolicy:
    return get_settings().bonus_policy
