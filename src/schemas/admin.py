"""Administrative integrity report schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class OrphanedOrderSchema(BaseModel):
    """A pending order that has no lines."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order UUID")
    total_amount: Decimal = Field(description="Recorded total")
    created_at: datetime = Field(description="Creation timestamp")


class BalanceDriftSchema(BaseModel):
    """A profile whose cached balance differs from its ledger."""

    model_config = ConfigDict(from_attributes=True)

    profile_id: UUID = Field(description="Profile UUID")
    cached_balance: int = Field(description="Value in profiles.loyalty_points")
    ledger_balance: int = Field(description="Sum of ledger entries")


class IntegrityReport(BaseModel):
    """Result of the checkout data integrity check."""

    model_config = ConfigDict(from_attributes=True)

    orphaned_orders: list[OrphanedOrderSchema] = Field(description="Pending orders without lines")
    balance_drift: list[BalanceDriftSchema] = Field(description="Profiles with balance drift")

    @property
    def healthy(self) -> bool:
        return not self.orphaned_orders and not self.balance_drift
