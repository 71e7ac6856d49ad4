"""Session model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Session(TypedDict):
    """Anonymous visitor session row.

    Owns the visitor's cart and any orders placed without signing in.
    """

    id: UUID
    session_token: str
    claimed_by_profile_id: UUID | None
    expires_at: datetime
    created_at: datetime
    updated_at: datetime
