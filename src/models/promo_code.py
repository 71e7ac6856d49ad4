"""Promo code model type definitions."""

from datetime import datetime
from decimal import Decimal
from typing import TypedDict
from uuid import UUID


class PromoCode(TypedDict):
    """promo_codes table row representation.

    Codes are stored uppercase. Percent takes precedence over a fixed
    amount when both are set.
    """

    id: UUID
    code: str
    discount_percent: Decimal | None
    discount_amount: Decimal | None
    min_order_amount: Decimal | None
    max_uses: int | None
    used_count: int
    valid_from: datetime | None
    valid_until: datetime | None
    is_active: bool
    created_at: datetime
    updated_at: datetime
