"""Cart model type definitions."""

from datetime import datetime
from decimal import Decimal
from typing import TypedDict
from uuid import UUID


class CartItem(TypedDict):
    """cart_items table row.

    Owned by exactly one of profile_id (signed-in customer) or
    session_id (anonymous visitor). Unique per owner and product.
    """

    id: UUID
    profile_id: UUID | None
    session_id: UUID | None
    product_id: UUID
    name: str
    unit_price: Decimal
    quantity: int
    image_ref: str | None
    slug: str | None
    created_at: datetime
    updated_at: datetime
