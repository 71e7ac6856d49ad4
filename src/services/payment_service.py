"""Payment provider integration: hosted checkout sessions and settlement callbacks."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

import stripe
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import get_settings
from src.core.stripe import get_stripe
from src.core.supabase import get_supabase_client
from src.models.order import OrderUpdate

logger = logging.getLogger(__name__)

# Backoff between attempts on connection errors
MIN_WAIT_SECONDS = 0.5
MAX_WAIT_SECONDS = 4

PaymentOutcome = Literal["paid", "failed", "pending"]


class PaymentProviderError(Exception):
    """The provider could not start a payment.

    Says nothing about whether the customer was charged; settlement is
    only ever learned from the provider callback or a status check.
    """

    def __init__(self, message: str, timed_out: bool = False) -> None:
        self.message = message
        self.timed_out = timed_out
        super().__init__(message)


@dataclass(frozen=True)
class PaymentSession:
    """A hosted payment page the buyer is redirected to."""

    session_id: str
    redirect_url: str


def to_minor_units(amount: Decimal) -> int:
    """Convert a currency amount to the provider's minor units."""
    return int((Decimal(amount) * 100).to_integral_value())


def payment_return_urls(order_id: UUID | str) -> tuple[str, str]:
    """Build success and failure return URLs, both referencing the order."""
    base = get_settings().frontend_url.rstrip("/")
    return (
        f"{base}/payment-result?payment=success&order={order_id}",
        f"{base}/payment-result?payment=failed&order={order_id}",
    )


def order_number(order_id: UUID | str) -> str:
    """Short human-facing order number."""
    return str(order_id).replace("-", "")[:8].upper()


class PaymentService:
    """Service for payment sessions and payment status updates."""

    def __init__(self) -> None:
        """Initialize payment service with clients."""
        self.client = get_supabase_client()
        self.stripe = get_stripe()
        self.settings = get_settings()

    def _retrying(self) -> Retrying:
        return Retrying(
            retry=retry_if_exception_type(stripe.APIConnectionError),
            stop=stop_after_attempt(self.settings.payment_max_attempts),
            wait=wait_exponential(multiplier=MIN_WAIT_SECONDS, min=MIN_WAIT_SECONDS, max=MAX_WAIT_SECONDS),
            reraise=True,
        )

    def _create_checkout_session(self, params: dict[str, Any], idempotency_key: str) -> Any:
        """Create the provider session, retrying connection errors.

        The idempotency key makes a retried or repeated request return
        the same session instead of opening a second one.
        """
        for attempt in self._retrying():
            with attempt:
                return self.stripe.checkout.Session.create(**params, idempotency_key=idempotency_key)

    async def _call_provider(self, func: Any, *args: Any) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args),
                timeout=self.settings.payment_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise PaymentProviderError("Payment provider did not respond in time", timed_out=True) from e
        except stripe.StripeError as e:
            raise PaymentProviderError(e.user_message or str(e)) from e

    async def create_session(
        self,
        order_id: UUID,
        amount: Decimal,
        return_url: str,
        fail_url: str,
        description: str,
        idempotency_key: str | None = None,
    ) -> PaymentSession:
        """Request a hosted payment session for an order.

        Args:
            order_id: The order being paid.
            amount: Final charged total.
            return_url: Where the provider sends the buyer after paying.
            fail_url: Where the provider sends the buyer on failure or cancel.
            description: Text shown on the payment page.
            idempotency_key: Provider idempotency key; defaults to one per order.

        Returns:
            PaymentSession: Session id and redirect URL.

        Raises:
            PaymentProviderError: If the provider is not configured, times out,
                or rejects the request.
        """
        if not self.settings.payments_enabled:
            raise PaymentProviderError("Payment provider is not configured")

        params: dict[str, Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.settings.payment_currency,
                        "unit_amount": to_minor_units(amount),
                        "product_data": {"name": description},
                    },
                    "quantity": 1,
                }
            ],
            "success_url": return_url,
            "cancel_url": fail_url,
            "client_reference_id": str(order_id),
            "metadata": {"order_id": str(order_id)},
            "payment_intent_data": {"metadata": {"order_id": str(order_id)}},
        }

        session = await self._call_provider(
            self._create_checkout_session, params, idempotency_key or f"order-{order_id}"
        )
        if not getattr(session, "url", None):
            raise PaymentProviderError("Payment provider returned no redirect URL")

        try:
            attach: OrderUpdate = {"payment_session_id": session.id}
            self.client.table("orders").update(attach).eq("id", str(order_id)).execute()
        except Exception as e:
            # The webhook carries order_id in metadata, so settlement still works.
            logger.error("Failed to attach payment session %s to order %s: %s", session.id, order_id, str(e))

        logger.info("Created payment session %s for order %s", session.id, order_id)
        return PaymentSession(session_id=session.id, redirect_url=session.url)

    async def start_order_payment(
        self,
        order_id: UUID,
        total: Decimal,
        previous_session_id: str | None = None,
    ) -> PaymentSession:
        """Start paying an order, with return URLs that reference it.

        A still-open previous session is handed out again. An expired one
        is replaced under a key derived from it, since the provider would
        otherwise replay the dead session for the plain order key.

        Args:
            order_id: The order being paid.
            total: Final charged total.
            previous_session_id: Provider session already attached to the order.

        Raises:
            PaymentProviderError: If the provider cannot start the payment, or
                the previous session has already been paid.
        """
        idempotency_key = None
        if previous_session_id:
            previous = await self._call_provider(
                self.stripe.checkout.Session.retrieve, previous_session_id
            )
            if previous.status == "open" and getattr(previous, "url", None):
                logger.info("Reusing open payment session %s for order %s", previous.id, order_id)
                return PaymentSession(session_id=previous.id, redirect_url=previous.url)
            if previous.status == "complete":
                raise PaymentProviderError("Payment for this order is already being confirmed")
            idempotency_key = f"order-{order_id}-after-{previous_session_id}"

        success_url, fail_url = payment_return_urls(order_id)
        return await self.create_session(
            order_id=order_id,
            amount=total,
            return_url=success_url,
            fail_url=fail_url,
            description=f"Order #{order_number(order_id)}",
            idempotency_key=idempotency_key,
        )

    async def fetch_session_outcome(self, session_id: str) -> PaymentOutcome:
        """Ask the provider how a payment session ended.

        Args:
            session_id: Provider session id stored on the order.

        Returns:
            str: "paid", "failed" (session expired) or "pending".

        Raises:
            PaymentProviderError: If the provider cannot be reached.
        """
        session = await self._call_provider(self.stripe.checkout.Session.retrieve, session_id)
        if session.payment_status in ("paid", "no_payment_required"):
            return "paid"
        if session.status == "expired":
            return "failed"
        return "pending"

    async def apply_outcome(self, order_id: str, outcome: PaymentOutcome) -> dict[str, Any]:
        """Record a payment outcome on an order.

        A paid order moves to processing. A failure never overwrites a
        payment that is already recorded as paid.

        Returns:
            dict: The updated order, or {} when nothing changed.
        """
        if outcome == "pending":
            return {}

        if outcome == "paid":
            paid: OrderUpdate = {"payment_status": "paid", "status": "processing"}
            response = (
                self.client.table("orders")
                .update(paid)
                .eq("id", order_id)
                .eq("status", "pending")
                .execute()
            )
        else:
            failed: OrderUpdate = {"payment_status": "failed"}
            response = (
                self.client.table("orders")
                .update(failed)
                .eq("id", order_id)
                .neq("payment_status", "paid")
                .execute()
            )

        if response.data:
            logger.info("Order %s payment marked %s", order_id, outcome)
            return response.data[0]

        logger.info("Order %s not updated to %s (missing or already settled)", order_id, outcome)
        return {}

    @staticmethod
    def _order_id_from_session(session: dict[str, Any]) -> str | None:
        metadata = session.get("metadata") or {}
        return metadata.get("order_id") or session.get("client_reference_id")

    async def handle_session_completed(self, event: dict[str, Any]) -> dict[str, Any]:
        """Process checkout.session.completed and async_payment_succeeded events.

        A completed session with a delayed payment method stays pending
        until the async success event arrives.
        """
        session = event["data"]["object"]
        order_id = self._order_id_from_session(session)
        if not order_id:
            logger.warning("Webhook missing order_id in metadata: %s", session.get("id"))
            return {}

        if session.get("payment_status") not in ("paid", "no_payment_required"):
            logger.info("Order %s checkout completed, payment still %s", order_id, session.get("payment_status"))
            return {}

        return await self.apply_outcome(order_id, "paid")

    async def handle_session_failed(self, event: dict[str, Any]) -> dict[str, Any]:
        """Process checkout.session.expired and async_payment_failed events."""
        session = event["data"]["object"]
        order_id = self._order_id_from_session(session)
        if not order_id:
            logger.warning("Webhook missing order_id in metadata: %s", session.get("id"))
            return {}

        return await self.apply_outcome(order_id, "failed")

    def verify_webhook_signature(self, payload: bytes, sig_header: str) -> dict[str, Any]:
        """Verify provider webhook signature and return the event.

        Raises:
            ValueError: If signature is invalid or the webhook secret is not configured.
        """
        if not self.settings.stripe_webhook_secret:
            raise ValueError("Stripe webhook secret is not configured. Please set STRIPE_WEBHOOK_SECRET environment variable.")

        try:
            return self.stripe.Webhook.construct_event(
                payload, sig_header, self.settings.stripe_webhook_secret
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Invalid webhook signature: %s", str(e))
            raise ValueError("Invalid webhook signature") from e
