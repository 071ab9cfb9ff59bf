"""
Pytest configuration.

Adds the project root to the Python path so tests can import domain,
repositories, services and api, and provides the shared fixtures: an
in-memory Supabase double and a FastAPI test client wired to it.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add the project root to the Python path
# so tests can import domain, repositories, etc.
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from domain.bonus_policy import BonusPolicy  # noqa: E402
from fakes import FakeSupabase  # noqa: E402


@pytest.fixture
def db() -> FakeSupabase:
    """Empty store with the same unique constraint as the bonuses table."""

    return FakeSupabase(unique={"bonuses": ("phone_digits",)})


@pytest.fixture
def now() -> datetime:
    return datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def policy() -> BonusPolicy:
    return BonusPolicy()


@pytest.fixture
def api_client(db: FakeSupabase, policy: BonusPolicy):
    """TestClient whose handlers use the in-memory store."""

    from fastapi.testclient import TestClient

    from api.dependencies import get_bonus_policy, get_db
    from api.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_bonus_policy] = lambda: policy
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
