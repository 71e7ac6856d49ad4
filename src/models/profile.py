"""Profile model type definitions for database operations."""

from datetime import datetime
from typing import TypedDict
from uuid import UUID


class Profile(TypedDict):
    """Customer profile row.

    loyalty_points is a cached sum of the customer's loyalty_transactions.
    It is only changed by delta inside the submit_order function.
    """

    id: UUID
    user_id: UUID
    display_name: str | None
    email: str | None
    phone: str | None
    loyalty_points: int
    created_at: datetime
    updated_at: datetime


class ProfileCreate(TypedDict, total=False):
    """Data required to create a new profile."""

    user_id: str
    display_name: str | None
    email: str | None
    loyalty_points: int
