"""Pricing value objects shared by the promo, loyalty and checkout services."""

import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

MONEY_QUANTUM = Decimal("0.01")


class PricingError(ValueError):
    """Raised when a pricing breakdown would break its invariants."""


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Normalize a numeric value to a two-decimal Decimal.

    Floats are converted through str() so 0.1 stays 0.10.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(MONEY_QUANTUM)


@dataclass(frozen=True)
class CartLine:
    """A line being checked out.

    Either read from the persisted cart or synthesized for a direct buy.
    Never mutated once checkout begins.
    """

    product_id: UUID | None
    name: str
    unit_price: Decimal
    quantity: int
    image_ref: str | None = None
    slug: str | None = None

    def __post_init__(self) -> None:
        if self.quantity < 1:
            raise PricingError(f"Quantity must be at least 1 for {self.name!r}")
        if self.unit_price < 0:
            raise PricingError(f"Unit price must not be negative for {self.name!r}")

    @property
    def line_total(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)

    def to_order_item(self) -> dict[str, Any]:
        """Snapshot this line as an order_items payload (order_id is set by the database)."""
        return {
            "product_id": str(self.product_id) if self.product_id else None,
            "product_name": self.name,
            "quantity": self.quantity,
            "price": str(to_money(self.unit_price)),
        }


def calculate_subtotal(lines: Iterable[CartLine]) -> Decimal:
    """Sum of unit_price x quantity over all lines, before any discount."""
    return to_money(sum((line.line_total for line in lines), Decimal("0")))


@dataclass(frozen=True)
class PricingBreakdown:
    """Derived price of an order. Not persisted as a unit.

    Invariant: total = subtotal + delivery_cost - promo_discount - points_discount,
    with every component and the total non-negative.
    """

    subtotal: Decimal
    delivery_cost: Decimal
    promo_discount: int
    points_discount: int
    total: Decimal

    def __post_init__(self) -> None:
        if self.subtotal < 0 or self.delivery_cost < 0:
            raise PricingError("Subtotal and delivery cost must not be negative")
        if self.promo_discount < 0 or self.points_discount < 0:
            raise PricingError("Discounts must not be negative")
        expected = self.subtotal + self.delivery_cost - self.promo_discount - self.points_discount
        if to_money(expected) != to_money(self.total):
            raise PricingError(f"Total {self.total} does not match components ({expected})")
        if self.total < 0:
            raise PricingError(f"Total must not be negative, got {self.total}")

    @property
    def total_discount(self) -> int:
        return self.promo_discount + self.points_discount

    def to_dict(self) -> dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "delivery_cost": self.delivery_cost,
            "promo_discount": self.promo_discount,
            "points_discount": self.points_discount,
            "total": self.total,
        }


def compose_pricing(
    subtotal: Decimal,
    delivery_cost: Decimal,
    promo_discount: int = 0,
    points_discount: int = 0,
) -> PricingBreakdown:
    """Combine subtotal, delivery and both discounts into a breakdown.

    Discounts only reduce the goods part of the order. The promo discount
    is capped at the subtotal and redeemed points at what remains after
    the promo, so the total never drops below the delivery cost.

    Args:
        subtotal: Sum of the lines before discounts.
        delivery_cost: Quote already obtained for the address/provider pair.
        promo_discount: Validated promo discount in whole currency units.
        points_discount: Already clamped loyalty redemption.

    Returns:
        PricingBreakdown: The composed price.
    """
    subtotal = to_money(subtotal)
    delivery_cost = to_money(delivery_cost)
    goods_cap = math.floor(subtotal)

    promo = min(max(promo_discount, 0), goods_cap)
    points = min(max(points_discount, 0), goods_cap - promo)
    total = to_money(subtotal + delivery_cost - promo - points)

    return PricingBreakdown(
        subtotal=subtotal,
        delivery_cost=delivery_cost,
        promo_discount=promo,
        points_discount=points,
        total=total,
    )
