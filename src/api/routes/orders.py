"""Order API routes: history, details and payment recovery."""

from typing import Any
from uuid import UUID

from fastapi import APIRouter

from src.api.deps import AuthContext, DualAuth, get_profile_id
from src.api.middleware.error_handler import (
    AuthorizationError,
    NotFoundError,
    PaymentUnavailableError,
    ValidationError,
)
from src.schemas.checkout import (
    OrderItemSchema,
    OrderListResponse,
    OrderResponse,
    PaymentSessionResponse,
    PaymentStatusResponse,
)
from src.services.order_service import OrderService
from src.services.payment_service import PaymentProviderError

router = APIRouter(prefix="/orders", tags=["orders"])


def to_order_response(order: dict[str, Any]) -> OrderResponse:
    """Build the API view of an order row with its embedded lines."""
    items = [OrderItemSchema(**item) for item in order.get("order_items") or []]
    fields = {key: value for key, value in order.items() if key != "order_items"}
    return OrderResponse(**fields, items=items)


async def get_owned_order(service: OrderService, order_id: UUID, auth: AuthContext) -> dict[str, Any]:
    """Load an order the caller owns.

    Raises:
        NotFoundError: 404 if the order does not exist.
        AuthorizationError: 403 if the caller does not own it.
    """
    order = await service.get_order(order_id)
    if not order:
        raise NotFoundError("Order not found")

    profile_id = await get_profile_id(auth)
    if not service.is_owner(order, profile_id=profile_id, session_id=auth.session_id):
        raise AuthorizationError("Not authorized to view this order")
    return order


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
    description="Returns all orders for the signed-in customer or session.",
)
async def list_orders(auth: DualAuth) -> OrderListResponse:
    """List all orders for the current customer or session.

    Args:
        auth: Dual auth context (user or session).

    Returns:
        OrderListResponse: Orders, newest first.
    """
    service = OrderService()
    profile_id = await get_profile_id(auth)
    orders = await service.list_orders(profile_id=profile_id, session_id=auth.session_id)
    return OrderListResponse(items=[to_order_response(order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order by ID. Only accessible by the order owner.",
)
async def get_order(order_id: UUID, auth: DualAuth) -> OrderResponse:
    """Get a single order by ID.

    Raises:
        NotFoundError: 404 if order not found.
        AuthorizationError: 403 if not authorized to view this order.
    """
    service = OrderService()
    order = await get_owned_order(service, order_id, auth)
    return to_order_response(order)


@router.post(
    "/{order_id}/payment",
    response_model=PaymentSessionResponse,
    responses={502: {"description": "Payment provider unavailable"}},
    summary="Pay for a saved order",
    description="Starts online payment for an order whose payment could not be started at checkout.",
)
async def pay_order(order_id: UUID, auth: DualAuth) -> PaymentSessionResponse:
    """Start payment for an unpaid order.

    Raises:
        ValidationError: 422 if the order is not awaiting online payment.
        PaymentUnavailableError: 502 if the provider cannot start the payment.
    """
    service = OrderService()
    order = await get_owned_order(service, order_id, auth)

    try:
        payment_url = await service.resume_payment(order)
    except PaymentProviderError as e:
        raise PaymentUnavailableError() from e
    except ValueError as e:
        raise ValidationError(str(e)) from e

    return PaymentSessionResponse(order_id=order_id, payment_url=payment_url)


@router.post(
    "/{order_id}/payment/verify",
    response_model=PaymentStatusResponse,
    responses={502: {"description": "Payment provider unavailable"}},
    summary="Verify payment",
    description="Asks the provider for the payment outcome when the buyer returns from the payment page.",
)
async def verify_payment(order_id: UUID, auth: DualAuth) -> PaymentStatusResponse:
    """Refresh an order's payment status from the provider.

    Raises:
        PaymentUnavailableError: 502 if the provider cannot be reached.
    """
    service = OrderService()
    order = await get_owned_order(service, order_id, auth)

    try:
        order = await service.verify_payment(order)
    except PaymentProviderError as e:
        raise PaymentUnavailableError("Payment status could not be checked. Please try again later.") from e

    return PaymentStatusResponse(
        order_id=order_id,
        status=order["status"],
        payment_status=order["payment_status"],
    )
