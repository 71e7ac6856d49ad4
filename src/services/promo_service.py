"""Promo code validation.

Validation only reads. Usage is consumed at order submission, inside the
submit_order database function, so the UI can re-validate as often as it
likes while the cart is edited.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any

from src.core.supabase import get_supabase_client
from src.models.promo_code import PromoCode
from src.services.pricing import to_money

logger = logging.getLogger(__name__)


class PromoRejectionReason(str, Enum):
    """Why a promo code cannot be applied."""

    CODE_NOT_FOUND = "code_not_found"
    NOT_YET_ACTIVE = "not_yet_active"
    EXPIRED = "expired"
    BELOW_MINIMUM = "below_minimum"
    USAGE_EXHAUSTED = "usage_exhausted"


REJECTION_MESSAGES: dict[PromoRejectionReason, str] = {
    PromoRejectionReason.CODE_NOT_FOUND: "Promo code not found",
    PromoRejectionReason.NOT_YET_ACTIVE: "Promo code is not active yet",
    PromoRejectionReason.EXPIRED: "Promo code has expired",
    PromoRejectionReason.BELOW_MINIMUM: "Order total is below the promo code minimum",
    PromoRejectionReason.USAGE_EXHAUSTED: "Promo code usage limit reached",
}


@dataclass(frozen=True)
class PromoDiscount:
    """A promo code that applies to the given subtotal."""

    code: str
    discount: int
    percent: Decimal | None = None
    amount: Decimal | None = None
    promo_id: str | None = None


@dataclass(frozen=True)
class PromoRejection:
    """A promo code that does not apply, with the reason."""

    code: str
    reason: PromoRejectionReason
    min_order_amount: Decimal | None = None

    @property
    def message(self) -> str:
        return REJECTION_MESSAGES[self.reason]


PromoResult = PromoDiscount | PromoRejection


def normalize_code(code: str) -> str:
    """Trim and uppercase a promo code."""
    return code.strip().upper()


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    return Decimal(str(value))


def evaluate_promo(promo: dict[str, Any], subtotal: Decimal, now: datetime) -> PromoResult:
    """Apply the promo rules to an already-found active promo row.

    Checks run in order and stop at the first failure: start date, end
    date, minimum order amount, usage limit. The discount is the floored
    percentage of the subtotal when a percent is set, otherwise the fixed
    amount, otherwise zero.

    Args:
        promo: promo_codes row.
        subtotal: Order subtotal before any discount.
        now: Evaluation time (timezone-aware).

    Returns:
        PromoDiscount | PromoRejection: The outcome.
    """
    code = normalize_code(promo["code"])
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    valid_from = _parse_timestamp(promo.get("valid_from"))
    if valid_from is not None and now < valid_from:
        return PromoRejection(code=code, reason=PromoRejectionReason.NOT_YET_ACTIVE)

    valid_until = _parse_timestamp(promo.get("valid_until"))
    if valid_until is not None and now > valid_until:
        return PromoRejection(code=code, reason=PromoRejectionReason.EXPIRED)

    min_order_amount = _parse_decimal(promo.get("min_order_amount"))
    if min_order_amount is not None and subtotal < min_order_amount:
        return PromoRejection(
            code=code,
            reason=PromoRejectionReason.BELOW_MINIMUM,
            min_order_amount=min_order_amount,
        )

    max_uses = promo.get("max_uses")
    if max_uses is not None and (promo.get("used_count") or 0) >= max_uses:
        return PromoRejection(code=code, reason=PromoRejectionReason.USAGE_EXHAUSTED)

    percent = _parse_decimal(promo.get("discount_percent"))
    amount = _parse_decimal(promo.get("discount_amount"))
    if percent is not None:
        discount = math.floor(to_money(subtotal) * percent / 100)
    elif amount is not None:
        discount = math.floor(amount)
    else:
        discount = 0

    return PromoDiscount(
        code=code,
        discount=discount,
        percent=percent,
        amount=amount if percent is None else None,
        promo_id=str(promo["id"]) if promo.get("id") else None,
    )


class PromoService:
    """Service for looking up and validating promo codes."""

    def __init__(self) -> None:
        """Initialize promo service with Supabase client."""
        self.client = get_supabase_client()

    async def get_active_promo(self, code: str) -> PromoCode | None:
        """Get an active promo code by its normalized code.

        Args:
            code: Code as typed by the customer.

        Returns:
            PromoCode | None: The promo_codes row or None if not found or inactive.
        """
        normalized = normalize_code(code)
        if not normalized:
            return None

        response = (
            self.client.table("promo_codes")
            .select("*")
            .eq("code", normalized)
            .eq("is_active", True)
            .limit(1)
            .execute()
        )

        return response.data[0] if response.data else None

    async def validate(
        self,
        code: str,
        subtotal: Decimal,
        now: datetime | None = None,
    ) -> PromoResult:
        """Validate a promo code against an order subtotal.

        Idempotent: never touches used_count.

        Args:
            code: Code as typed by the customer.
            subtotal: Order subtotal before any discount.
            now: Evaluation time, defaults to the current UTC time.

        Returns:
            PromoDiscount | PromoRejection: The outcome.
        """
        now = now or datetime.now(timezone.utc)
        promo = await self.get_active_promo(code)
        if not promo:
            logger.info("Promo code %r not found", normalize_code(code))
            return PromoRejection(code=normalize_code(code), reason=PromoRejectionReason.CODE_NOT_FOUND)

        return evaluate_promo(promo, subtotal, now)
