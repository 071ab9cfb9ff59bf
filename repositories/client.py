"""
Supabase client lifecycle.

This module contains *only* the database connection setup. The client is
created lazily on first use, cached for the life of the process, and handed
to repositories explicitly: every repository function takes the client as its
first argument instead of importing a module-level global.

Environment variables required (see settings.py):
- SUPABASE_URL: Your Supabase project URL
- SUPABASE_KEY: Your Supabase API key (use a server-side key only on the backend)
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Mapping

# The dependency is `supabase` (supabase-py). If your editor can't resolve it,
# install it in your environment: `pip install supabase`.
from postgrest.exceptions import APIError
from supabase import Client, create_client  # type: ignore[import-not-found]

from settings import get_settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_supabase_client() -> Client:
    """
    Return the process-wide Supabase client, creating it on first call.

    Raises:
        RuntimeError: If SUPABASE_URL or SUPABASE_KEY is missing
    """

    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_URL. "
            "Set SUPABASE_URL to your Supabase project URL."
        )

    if not settings.supabase_key:
        raise RuntimeError(
            "Missing environment variable: SUPABASE_KEY. "
            "Set SUPABASE_KEY to your Supabase API key."
        )

    logger.info("Creating Supabase client for %s", settings.supabase_url)
    return create_client(settings.supabase_url, settings.supabase_key)


def close_supabase_client() -> None:
    """Drop the cached client; the next call to get_supabase_client() reconnects."""

    if get_supabase_client.cache_info().currsize:
        logger.info("Releasing Supabase client")
    get_supabase_client.cache_clear()


def fetch_rows(query: Any, *, action: str) -> List[dict[str, Any]]:
    """
    Execute a query builder and return its rows.

    Raises:
        RuntimeError: If the response carries an error
    """

    response = query.execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "data", None) or []


def fetch_count(query: Any, *, action: str) -> int:
    """Execute a `select(..., count="exact")` query and return the exact count."""

    response = query.execute()
    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")
    return getattr(response, "count", 0) or 0


def _api_error_payload(error: APIError) -> Dict[str, Any]:
    try:
        payload = error.json() if callable(getattr(error, "json", None)) else {}
    except (TypeError, ValueError):
        return {}
    return payload if isinstance(payload, dict) else {}


def call_rpc(client: Client, function: str, params: Mapping[str, Any], *, action: str) -> Dict[str, Any]:
    """
    Call a PostgreSQL function that returns a JSON object and return that object.

    supabase-py raises APIError for some JSON results of an RPC, successful
    ones included; a payload carrying a "success" key is recovered from the
    error and returned like a normal result.

    Raises:
        RuntimeError: If the call fails or the function returns no JSON object
    """

    try:
        response = client.rpc(function, dict(params)).execute()
    except APIError as e:
        payload = _api_error_payload(e)
        if "success" in payload:
            return payload
        raise RuntimeError(f"Failed to {action}: {e}") from e

    error = getattr(response, "error", None)
    if error:
        raise RuntimeError(f"Failed to {action}: {error}")

    data = getattr(response, "data", None)
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        raise RuntimeError(f"Failed to {action}: unexpected result {data!r}")
    return data


__all__ = [
    "Client",
    "call_rpc",
    "get_supabase_client",
    "close_supabase_client",
    "fetch_rows",
    "fetch_count",
]
