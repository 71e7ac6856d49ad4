"""Database model type definitions."""

from src.models.cart import CartItem
from src.models.loyalty import LoyaltyTransaction, LoyaltyTransactionCreate, LoyaltyTransactionType
from src.models.order import (
    CheckoutSource,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    ShippingAddress,
)
from src.models.profile import Profile
from src.models.promo_code import PromoCode
from src.models.session import Session

__all__ = [
    "CartItem",
    "CheckoutSource",
    "LoyaltyTransaction",
    "LoyaltyTransactionCreate",
    "LoyaltyTransactionType",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentMethod",
    "PaymentStatus",
    "Profile",
    "PromoCode",
    "Session",
    "ShippingAddress",
]
