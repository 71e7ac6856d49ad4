"""Supabase client singleton for database operations."""

from functools import lru_cache
from typing import Any, Callable

from supabase import Client, create_client

from src.core.config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """Get cached Supabase client singleton for database operations.

    Uses the secret key, which bypasses RLS at the PostgREST level.
    Only use it after the caller's access to the rows has been checked
    (order ownership, cart ownership, admin role).

    Returns:
        Client: Supabase client instance.
    """
    settings = get_settings()
    return create_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection() -> dict[str, Any]:
    """Check if database connection is healthy.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        client = get_supabase_client()
        client.table("orders").select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}


# PostgREST's default max_rows; a response never holds more than this
PAGE_SIZE = 1000


def fetch_all_rows(build_query: Callable[[], Any]) -> list[dict[str, Any]]:
    """Read every row of a query, one PAGE_SIZE range at a time.

    Args:
        build_query: Returns a fresh, stably ordered select builder.
            A builder cannot be reused once executed, so one is built per page.

    Returns:
        list[dict]: All rows in query order.
    """
    rows: list[dict[str, Any]] = []
    start = 0
    while True:
        response = build_query().range(start, start + PAGE_SIZE - 1).execute()
        page = response.data or []
        rows.extend(page)
        if len(page) < PAGE_SIZE:
            return rows
        start += PAGE_SIZE
