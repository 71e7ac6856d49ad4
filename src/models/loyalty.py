"""Loyalty ledger model type definitions."""

from datetime import datetime
from typing import Literal, TypedDict
from uuid import UUID


LoyaltyTransactionType = Literal["spend", "earn"]


class LoyaltyTransaction(TypedDict):
    """loyalty_transactions table row.

    Signed: negative for spend, positive for earn. Rows are never updated.
    """

    id: UUID
    profile_id: UUID
    order_id: UUID | None
    points: int
    type: LoyaltyTransactionType
    description: str
    created_at: datetime


class LoyaltyTransactionCreate(TypedDict):
    """Ledger entry passed to the submit_order function."""

    points: int
    type: LoyaltyTransactionType
    description: str
