"""Webhook API routes for the payment provider."""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from src.services.order_service import OrderService
from src.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SUCCEEDED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")
FAILED_EVENTS = ("checkout.session.expired", "checkout.session.async_payment_failed")


@router.post(
    "/payments",
    status_code=status.HTTP_200_OK,
    summary="Handle payment provider webhooks",
    description="Receives payment outcome events. Requires a valid signature.",
)
async def payment_webhook(request: Request) -> dict[str, str]:
    """Handle payment provider webhook events.

    Handles:
    - checkout.session.completed / async_payment_succeeded: marks the order paid
      and moves it to processing, then clears the cart for cart orders
    - checkout.session.expired / async_payment_failed: marks the payment failed
      unless it is already paid

    Repeated deliveries are harmless since each update is conditional.

    Args:
        request: FastAPI request object for reading raw body and headers.

    Returns:
        dict: Acknowledgment message.

    Raises:
        HTTPException: 400 if the signature is missing or invalid.
    """
    payload = await request.body()

    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        logger.error("Missing Stripe-Signature header in webhook request")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe-Signature header",
        )

    payment_service = PaymentService()

    try:
        event = payment_service.verify_webhook_signature(payload, sig_header)
    except ValueError as e:
        logger.error("Invalid webhook signature: %s", str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature",
        ) from e

    event_type = event.get("type", "")
    logger.info("Processing payment webhook event: %s", event_type)

    if event_type in SUCCEEDED_EVENTS:
        order = await payment_service.handle_session_completed(event)
        if order:
            await OrderService().clear_cart_for_order(order)
    elif event_type in FAILED_EVENTS:
        await payment_service.handle_session_failed(event)
    else:
        logger.debug("Unhandled webhook event type: %s", event_type)

    # Always acknowledge so the provider stops retrying
    return {"status": "received"}
