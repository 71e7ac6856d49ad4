"""Loyalty Pydantic schemas."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class LoyaltyTransactionSchema(BaseModel):
    """A single ledger entry."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Entry UUID")
    order_id: UUID | None = Field(default=None, description="Order the entry belongs to")
    points: int = Field(description="Signed points change")
    type: Literal["spend", "earn"] = Field(description="Entry type")
    description: str = Field(description="Entry description")
    created_at: datetime = Field(description="Creation timestamp")


class LoyaltyResponse(BaseModel):
    """Balance and recent ledger history."""

    model_config = ConfigDict(from_attributes=True)

    balance: int = Field(description="Current point balance (1 point = 1 currency unit)")
    transactions: list[LoyaltyTransactionSchema] = Field(description="Recent ledger entries")
