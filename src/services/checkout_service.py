"""Checkout business logic: turns a cart or a direct item into a persisted order."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from postgrest.exceptions import APIError as PostgrestAPIError

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.models.loyalty import LoyaltyTransactionCreate
from src.models.order import ShippingAddress
from src.schemas.checkout import SubmitOrderRequest
from src.services.cart_service import CartService
from src.services.loyalty_service import LoyaltyService, earned_points, redemption_discount
from src.services.order_service import OrderService
from src.services.payment_service import PaymentProviderError, PaymentService, order_number
from src.services.pricing import CartLine, PricingBreakdown, calculate_subtotal, compose_pricing, to_money
from src.services.promo_service import (
    PromoDiscount,
    PromoRejection,
    PromoRejectionReason,
    PromoResult,
    PromoService,
    normalize_code,
)

logger = logging.getLogger(__name__)

PAYMENT_DEFERRED_MESSAGE = (
    "Payment could not be started. Your order has been saved and can be paid later."
)

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Exceptions raised by the submit_order function when the promo no longer applies.
PROMO_FAILURES: dict[str, PromoRejectionReason] = {
    "promo_inactive": PromoRejectionReason.CODE_NOT_FOUND,
    "promo_not_yet_active": PromoRejectionReason.NOT_YET_ACTIVE,
    "promo_expired": PromoRejectionReason.EXPIRED,
    "promo_usage_exhausted": PromoRejectionReason.USAGE_EXHAUSTED,
}


class CheckoutValidationError(ValueError):
    """Checkout input is incomplete or inconsistent. Nothing was written."""

    def __init__(self, message: str, details: list[dict[str, Any]] | None = None) -> None:
        self.message = message
        self.details = details or []
        super().__init__(message)


class PromoRejectedError(ValueError):
    """The promo code does not apply to this order. Nothing was written."""

    def __init__(self, rejection: PromoRejection) -> None:
        self.rejection = rejection
        super().__init__(rejection.message)


class OrderPersistenceError(Exception):
    """The order could not be stored. The transaction was rolled back."""


class SubmissionConflictError(ValueError):
    """The submission token already created an order for someone else."""

    def __init__(self, submission_token: str) -> None:
        self.submission_token = submission_token
        super().__init__("Submission token belongs to another order")


@dataclass(frozen=True)
class SubmitOrderResult:
    """Outcome of a successful submission (new or repeated)."""

    order_id: UUID
    status: str
    payment_status: str
    pricing: PricingBreakdown
    points_earned: int
    points_spent: int
    payment_url: str | None = None
    payment_error: str | None = None
    duplicate: bool = False

    @property
    def order_number(self) -> str:
        return order_number(self.order_id)


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


def check_preconditions(request: SubmitOrderRequest) -> None:
    """Check everything that must hold before any write is attempted.

    Raises:
        CheckoutValidationError: With one detail per offending field.
    """
    details: list[dict[str, Any]] = []

    def missing(*loc: str, msg: str) -> None:
        details.append({"loc": list(loc), "msg": msg, "type": "missing"})

    if request.source == "direct" and request.item is None:
        missing("item", msg="An item is required for a direct purchase")

    for field in ("name", "phone", "email"):
        if _is_blank(getattr(request.contact, field)):
            missing("contact", field, msg=f"Contact {field} is required")

    pickup_point = request.delivery.pickup_point if request.delivery else None
    if _is_blank(request.address.city):
        missing("address", "city", msg="City is required")
    if pickup_point is None:
        if _is_blank(request.address.street):
            missing("address", "street", msg="Street is required unless a pickup point is selected")
        if _is_blank(request.address.house):
            missing("address", "house", msg="House is required unless a pickup point is selected")

    if request.delivery is None:
        missing("delivery", msg="A delivery quote is required")

    if details:
        raise CheckoutValidationError("Checkout details are incomplete", details)


def build_shipping_address(request: SubmitOrderRequest) -> ShippingAddress:
    """Snapshot contact, address and delivery choice for the order row."""
    delivery = request.delivery
    pickup_point = delivery.pickup_point if delivery else None
    return {
        "name": request.contact.name.strip(),
        "phone": request.contact.phone.strip(),
        "email": request.contact.email.strip(),
        "city": request.address.city.strip(),
        "street": request.address.street,
        "house": request.address.house,
        "apartment": request.address.apartment,
        "postal_code": request.address.postal_code,
        "comment": request.address.comment,
        "delivery_provider": delivery.provider if delivery else None,
        "delivery_eta_days": delivery.eta_days if delivery else None,
        "pickup_point": pickup_point.model_dump() if pickup_point else None,
    }


def build_ledger_entries(order_id: UUID, points_spent: int, points_earned: int) -> list[LoyaltyTransactionCreate]:
    """Ledger entries for an order: spend first, then earn."""
    number = order_number(order_id)
    entries: list[LoyaltyTransactionCreate] = []
    if points_spent > 0:
        entries.append(
            {"points": -points_spent, "type": "spend", "description": f"Redeemed on order #{number}"}
        )
    if points_earned > 0:
        entries.append(
            {"points": points_earned, "type": "earn", "description": f"Earned on order #{number}"}
        )
    return entries


def pricing_from_order(order: dict[str, Any]) -> PricingBreakdown:
    """Rebuild the breakdown stored on an order row."""
    return PricingBreakdown(
        subtotal=to_money(order["subtotal"]),
        delivery_cost=to_money(order["delivery_cost"]),
        promo_discount=int(order.get("promo_discount") or 0),
        points_discount=int(order.get("points_spent") or 0),
        total=to_money(order["total_amount"]),
    )


class CheckoutService:
    """Service for promo validation and order submission."""

    def __init__(self) -> None:
        """Initialize checkout service with clients and collaborating services."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.promo_service = PromoService()
        self.loyalty_service = LoyaltyService()
        self.cart_service = CartService()
        self.payment_service = PaymentService()

    async def validate_promo(
        self,
        code: str,
        subtotal: Decimal,
        now: datetime | None = None,
    ) -> PromoResult:
        """Validate a promo code for live feedback. Consumes no usage."""
        return await self.promo_service.validate(code, subtotal, now)

    async def get_order_by_token(self, submission_token: str) -> dict[str, Any] | None:
        """Get the order created by a submission token, if any."""
        response = (
            self.client.table("orders")
            .select("*")
            .eq("submission_token", submission_token)
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def resolve_lines(
        self,
        request: SubmitOrderRequest,
        profile_id: UUID | None,
        session_id: UUID | None,
    ) -> list[CartLine]:
        """Get the lines being bought: the single direct item or the owner's cart.

        Raises:
            CheckoutValidationError: If there is nothing to buy.
        """
        if request.source == "direct":
            item = request.item
            lines = [
                CartLine(
                    product_id=item.product_id,
                    name=item.name,
                    unit_price=to_money(item.unit_price),
                    quantity=item.quantity,
                    image_ref=item.image_ref,
                    slug=item.slug,
                )
            ]
        else:
            lines = await self.cart_service.get_lines(profile_id=profile_id, session_id=session_id)

        if not lines:
            raise CheckoutValidationError(
                "Cart is empty",
                [{"loc": ["cart"], "msg": "Add at least one item before checking out", "type": "empty"}],
            )
        return lines

    async def _try_start_payment(
        self, order: dict[str, Any]
    ) -> tuple[str | None, str | None]:
        """Start payment when the order's method needs it. Failures are reported, not raised.

        Returns:
            tuple: (payment_url, payment_error)
        """
        if order.get("payment_status") != "pending":
            return None, None
        if not self.settings.requires_online_payment(order["payment_method"]):
            return None, None

        try:
            session = await self.payment_service.start_order_payment(
                UUID(str(order["id"])),
                to_money(order["total_amount"]),
                previous_session_id=order.get("payment_session_id"),
            )
            return session.redirect_url, None
        except PaymentProviderError as e:
            logger.error(
                "Payment could not be started for order %s (timed_out=%s): %s",
                order["id"],
                e.timed_out,
                e.message,
            )
            return None, PAYMENT_DEFERRED_MESSAGE

    async def _duplicate_result(
        self,
        order: dict[str, Any],
        profile_id: UUID | None,
        session_id: UUID | None,
    ) -> SubmitOrderResult:
        """Answer a resubmission with the order the token already created.

        Raises:
            SubmissionConflictError: If the order belongs to another buyer.
        """
        if not OrderService.is_owner(order, profile_id=profile_id, session_id=session_id):
            logger.warning(
                "Submission token of order %s reused by profile=%s session=%s",
                order["id"],
                profile_id,
                session_id,
            )
            raise SubmissionConflictError(order.get("submission_token", ""))

        logger.info("Submission token already used, returning order %s", order["id"])
        payment_url, payment_error = await self._try_start_payment(order)
        return SubmitOrderResult(
            order_id=UUID(str(order["id"])),
            status=order["status"],
            payment_status=order["payment_status"],
            pricing=pricing_from_order(order),
            points_earned=int(order.get("points_earned") or 0),
            points_spent=int(order.get("points_spent") or 0),
            payment_url=payment_url,
            payment_error=payment_error,
            duplicate=True,
        )

    async def _apply_promo(self, code: str | None, subtotal: Decimal, now: datetime) -> PromoDiscount | None:
        if _is_blank(code):
            return None
        result = await self.promo_service.validate(code, subtotal, now)
        if isinstance(result, PromoRejection):
            raise PromoRejectedError(result)
        return result

    async def submit_order(
        self,
        request: SubmitOrderRequest,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
        now: datetime | None = None,
    ) -> SubmitOrderResult:
        """Create an order exactly once per submission token.

        Order row, lines, ledger entries, balance change and promo usage are
        written by the submit_order database function in one transaction,
        so a failure leaves nothing behind. Payment start and cart clearing
        happen afterwards and never undo the order.

        Args:
            request: Checkout form contents.
            profile_id: Profile of the signed-in customer; None for guests.
            session_id: Anonymous session that owns the cart and the order.
            now: Evaluation time for the promo code.

        Returns:
            SubmitOrderResult: The order, its pricing and the payment handoff.

        Raises:
            CheckoutValidationError: Missing fields, empty cart, or not enough points.
            PromoRejectedError: The promo code does not apply.
            OrderPersistenceError: The order could not be stored.
            SubmissionConflictError: The token already created another buyer's order.
        """
        now = now or datetime.now(timezone.utc)
        check_preconditions(request)

        existing = await self.get_order_by_token(request.submission_token)
        if existing:
            return await self._duplicate_result(existing, profile_id, session_id)

        lines = await self.resolve_lines(request, profile_id, session_id)
        subtotal = calculate_subtotal(lines)

        promo = await self._apply_promo(request.promo_code, subtotal, now)

        requested_points = 0
        if profile_id and request.points_to_redeem > 0:
            balance = await self.loyalty_service.get_balance(profile_id)
            requested_points = redemption_discount(request.points_to_redeem, balance, subtotal)
            if requested_points < request.points_to_redeem:
                logger.info(
                    "Clamped redemption for profile %s from %d to %d (balance %d)",
                    profile_id,
                    request.points_to_redeem,
                    requested_points,
                    balance,
                )

        pricing = compose_pricing(
            subtotal=subtotal,
            delivery_cost=request.delivery.cost,
            promo_discount=promo.discount if promo else 0,
            points_discount=requested_points,
        )
        points_earned = earned_points(pricing.total) if profile_id else 0

        order_id = uuid4()
        order, created = await self._persist_order(
            order_id=order_id,
            request=request,
            lines=lines,
            pricing=pricing,
            promo=promo,
            points_earned=points_earned,
            profile_id=profile_id,
            session_id=session_id,
        )
        if not created:
            return await self._duplicate_result(order, profile_id, session_id)

        logger.info(
            "Created order %s: total=%s promo=%d points_spent=%d points_earned=%d",
            order["id"],
            pricing.total,
            pricing.promo_discount,
            pricing.points_discount,
            points_earned,
        )

        payment_url, payment_error = await self._try_start_payment(order)
        if payment_url:
            # Buyer is leaving for the provider; the cart stays until they return.
            return self._result(order, pricing, points_earned, payment_url=payment_url)

        if request.source == "cart":
            try:
                await self.cart_service.clear(profile_id=profile_id, session_id=session_id)
            except Exception as e:
                logger.error("Failed to clear cart after order %s: %s", order["id"], str(e))

        return self._result(order, pricing, points_earned, payment_error=payment_error)

    @staticmethod
    def _result(
        order: dict[str, Any],
        pricing: PricingBreakdown,
        points_earned: int,
        payment_url: str | None = None,
        payment_error: str | None = None,
    ) -> SubmitOrderResult:
        return SubmitOrderResult(
            order_id=UUID(str(order["id"])),
            status=order.get("status", "pending"),
            payment_status=order.get("payment_status", "pending"),
            pricing=pricing,
            points_earned=points_earned,
            points_spent=pricing.points_discount,
            payment_url=payment_url,
            payment_error=payment_error,
        )

    async def _persist_order(
        self,
        order_id: UUID,
        request: SubmitOrderRequest,
        lines: list[CartLine],
        pricing: PricingBreakdown,
        promo: PromoDiscount | None,
        points_earned: int,
        profile_id: UUID | None,
        session_id: UUID | None,
    ) -> tuple[dict[str, Any], bool]:
        """Write the order and everything that depends on it in one transaction.

        Returns:
            tuple: (order row, created). created is False when another request
            with the same token won the race.
        """
        params = {
            "p_order_id": str(order_id),
            "p_submission_token": request.submission_token,
            "p_profile_id": str(profile_id) if profile_id else None,
            "p_session_id": str(session_id) if session_id else None,
            "p_checkout_source": request.source,
            "p_payment_method": request.payment_method,
            "p_subtotal": str(pricing.subtotal),
            "p_delivery_cost": str(pricing.delivery_cost),
            "p_promo_id": promo.promo_id if promo else None,
            "p_promo_code": promo.code if promo else None,
            "p_promo_discount": pricing.promo_discount,
            "p_points_spent": pricing.points_discount,
            "p_points_earned": points_earned,
            "p_total_amount": str(pricing.total),
            "p_shipping_address": build_shipping_address(request),
            "p_notes": request.address.comment,
            "p_items": [line.to_order_item() for line in lines],
            "p_ledger": build_ledger_entries(order_id, pricing.points_discount, points_earned),
        }

        try:
            response = self.client.rpc("submit_order", params).execute()
        except PostgrestAPIError as e:
            message = e.message or ""
            for failure, reason in PROMO_FAILURES.items():
                if failure in message:
                    logger.info(
                        "Promo %s no longer applies at submission: %s",
                        promo.code if promo else None,
                        reason.value,
                    )
                    raise PromoRejectedError(
                        PromoRejection(code=normalize_code(request.promo_code or ""), reason=reason)
                    ) from e
            if "submission_token_conflict" in message:
                raise SubmissionConflictError(request.submission_token) from e
            if "insufficient_points" in message:
                raise CheckoutValidationError(
                    "Not enough loyalty points",
                    [{"loc": ["points_to_redeem"], "msg": "Loyalty balance changed, please retry", "type": "insufficient"}],
                ) from e
            if e.code == UNIQUE_VIOLATION:
                existing = await self.get_order_by_token(request.submission_token)
                if existing:
                    return existing, False
            logger.error("Order insert failed for token %s: %s", request.submission_token, message)
            raise OrderPersistenceError("Order could not be created") from e
        except Exception as e:
            logger.exception("Order insert failed for token %s", request.submission_token)
            raise OrderPersistenceError("Order could not be created") from e

        result = response.data or {}
        order = result.get("order")
        if not order:
            logger.error("submit_order returned no order for token %s", request.submission_token)
            raise OrderPersistenceError("Order could not be created")
        return order, bool(result.get("created", True))
