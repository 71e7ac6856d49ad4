"""Checkout and order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# Literal types for validation
OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "refunded", "failed"]
PaymentMethod = Literal["card", "sbp", "wallet", "cash"]
CheckoutSource = Literal["cart", "direct"]


class ContactInfo(BaseModel):
    """Buyer contact fields. Blank values are reported per field by checkout."""

    name: str = Field(default="", max_length=255, description="Recipient name")
    phone: str = Field(default="", max_length=50, description="Contact phone")
    email: str = Field(default="", max_length=255, description="Contact email")


class AddressInfo(BaseModel):
    """Street address. Street and house may be omitted when a pickup point is chosen."""

    city: str = Field(default="", max_length=255, description="City")
    street: str | None = Field(default=None, max_length=255, description="Street")
    house: str | None = Field(default=None, max_length=50, description="House number")
    apartment: str | None = Field(default=None, max_length=50, description="Apartment")
    postal_code: str | None = Field(default=None, max_length=20, description="Postal code")
    comment: str | None = Field(default=None, max_length=1000, description="Courier comment, stored as order notes")


class PickupPointSchema(BaseModel):
    """Pickup point as shown to the buyer when the order was placed."""

    id: str = Field(description="Provider's pickup point identifier")
    name: str = Field(description="Pickup point name")
    address: str = Field(description="Pickup point address")


class DeliverySelection(BaseModel):
    """Delivery provider choice with the quote already obtained for it."""

    provider: str = Field(min_length=1, max_length=50, description="Delivery provider key")
    cost: Decimal = Field(ge=0, description="Quoted delivery cost")
    eta_days: int | None = Field(default=None, ge=0, description="Quoted delivery time in days")
    pickup_point: PickupPointSchema | None = Field(default=None, description="Selected pickup point, if any")


class DirectItem(BaseModel):
    """Single item for a direct buy that bypasses the cart."""

    product_id: UUID = Field(description="Product UUID")
    name: str = Field(min_length=1, description="Product name at time of purchase")
    unit_price: Decimal = Field(ge=0, description="Unit price at time of purchase")
    quantity: int = Field(default=1, ge=1, description="Quantity")
    image_ref: str | None = Field(default=None, description="Product image reference")
    slug: str | None = Field(default=None, description="Product slug")


class SubmitOrderRequest(BaseModel):
    """Schema for POST /checkout/orders."""

    model_config = ConfigDict(from_attributes=True)

    submission_token: str = Field(
        min_length=8,
        max_length=128,
        description="Client-generated token, one per checkout attempt; resubmissions return the same order",
    )
    source: CheckoutSource = Field(default="cart", description="Check out the persisted cart or a single direct item")
    item: DirectItem | None = Field(default=None, description="Item for a direct buy")
    contact: ContactInfo = Field(default_factory=ContactInfo, description="Contact details")
    address: AddressInfo = Field(default_factory=AddressInfo, description="Delivery address")
    delivery: DeliverySelection | None = Field(default=None, description="Delivery selection and quote")
    payment_method: PaymentMethod = Field(default="card", description="Payment method")
    promo_code: str | None = Field(default=None, max_length=64, description="Promo code to apply")
    points_to_redeem: int = Field(default=0, ge=0, description="Loyalty points the customer wants to spend")


class PricingSchema(BaseModel):
    """Price breakdown of an order."""

    model_config = ConfigDict(from_attributes=True)

    subtotal: Decimal = Field(description="Sum of lines before discounts")
    delivery_cost: Decimal = Field(description="Delivery cost")
    promo_discount: int = Field(description="Promo code discount")
    points_discount: int = Field(description="Loyalty points discount")
    total: Decimal = Field(description="Amount charged")


class SubmitOrderResponse(BaseModel):
    """Schema for order submission response."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Created order UUID")
    order_number: str = Field(description="Short order number shown to the buyer")
    status: OrderStatus = Field(description="Order status")
    payment_status: PaymentStatus = Field(description="Payment status")
    pricing: PricingSchema = Field(description="Price breakdown")
    points_earned: int = Field(description="Loyalty points earned with this order")
    points_spent: int = Field(description="Loyalty points spent on this order")
    payment_url: str | None = Field(default=None, description="Hosted payment page to redirect to")
    payment_error: str | None = Field(default=None, description="Set when payment could not be started; the order is saved")
    duplicate: bool = Field(default=False, description="True when the submission token was already used")


class OrderItemSchema(BaseModel):
    """Schema for a single order line."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID | None = Field(default=None, description="Product UUID")
    product_name: str = Field(description="Product name")
    quantity: int = Field(ge=1, description="Quantity ordered")
    price: Decimal = Field(ge=0, description="Unit price at time of order")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID = Field(description="Order unique identifier")
    status: OrderStatus = Field(description="Order status")
    payment_method: PaymentMethod = Field(description="Payment method")
    payment_status: PaymentStatus = Field(description="Payment status")
    subtotal: Decimal = Field(description="Sum of lines before discounts")
    delivery_cost: Decimal = Field(description="Delivery cost")
    promo_code: str | None = Field(default=None, description="Applied promo code")
    promo_discount: int = Field(default=0, description="Promo code discount")
    points_spent: int = Field(default=0, description="Loyalty points spent")
    points_earned: int = Field(default=0, description="Loyalty points earned")
    total_amount: Decimal = Field(description="Amount charged")
    shipping_address: dict = Field(description="Shipping snapshot")
    notes: str | None = Field(default=None, description="Order notes")
    items: list[OrderItemSchema] = Field(default_factory=list, description="Order lines")
    created_at: datetime = Field(description="Creation timestamp")


class OrderListResponse(BaseModel):
    """Schema for order list API responses."""

    model_config = ConfigDict(from_attributes=True)

    items: list[OrderResponse] = Field(description="List of orders")


class PaymentSessionResponse(BaseModel):
    """Schema for a (re)started payment."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order UUID")
    payment_url: str = Field(description="Hosted payment page to redirect to")


class PaymentStatusResponse(BaseModel):
    """Schema for payment verification on return from the provider."""

    model_config = ConfigDict(from_attributes=True)

    order_id: UUID = Field(description="Order UUID")
    status: OrderStatus = Field(description="Order status")
    payment_status: PaymentStatus = Field(description="Payment status")
