"""Order model type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, TypedDict
from uuid import UUID


# Enum values matching the database enums
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "refunded", "failed"]
PaymentMethod = Literal["card", "sbp", "wallet", "cash"]
CheckoutSource = Literal["cart", "direct"]


class PickupPointSnapshot(TypedDict):
    """Point-in-time copy of the pickup point chosen at checkout."""

    id: str
    name: str
    address: str


class ShippingAddress(TypedDict):
    """Structured shipping snapshot stored in the orders.shipping_address JSONB column."""

    name: str
    phone: str
    email: str
    city: str
    street: str | None
    house: str | None
    apartment: str | None
    postal_code: str | None
    comment: str | None
    delivery_provider: str
    delivery_eta_days: int | None
    pickup_point: PickupPointSnapshot | None


class Order(TypedDict):
    """Order table row representation."""

    id: UUID
    profile_id: UUID | None
    session_id: UUID | None
    submission_token: str
    checkout_source: CheckoutSource
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_session_id: str | None
    subtotal: Decimal
    delivery_cost: Decimal
    promo_id: UUID | None
    promo_code: str | None
    promo_discount: int
    points_spent: int
    points_earned: int
    total_amount: Decimal
    shipping_address: ShippingAddress
    notes: str | None
    created_at: datetime
    updated_at: datetime


class OrderItem(TypedDict):
    """order_items table row: immutable snapshot of a cart line."""

    id: UUID
    order_id: UUID
    product_id: UUID | None
    product_name: str
    quantity: int
    price: Decimal


class OrderUpdate(TypedDict, total=False):
    """Fields changed after creation (payment callbacks, session attach)."""

    status: OrderStatus
    payment_status: PaymentStatus
    payment_session_id: str
