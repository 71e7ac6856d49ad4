"""Checkout API routes: order submission and promo validation."""

import logging

from fastapi import APIRouter, Response, status

from src.api.deps import DualAuth, get_profile_id
from src.api.middleware.error_handler import (
    ConflictError,
    OrderNotCreatedError,
    PromoRejectedError,
    ValidationError,
)
from src.schemas.checkout import PricingSchema, SubmitOrderRequest, SubmitOrderResponse
from src.schemas.promo import PromoValidateRequest, PromoValidateResponse
from src.services import checkout_service as checkout
from src.services.checkout_service import CheckoutService, SubmitOrderResult
from src.services.promo_service import PromoRejection

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkout", tags=["checkout"])


def promo_rejected(rejection: PromoRejection) -> PromoRejectedError:
    """Map a promo rejection to its API error."""
    return PromoRejectedError(
        message=rejection.message,
        reason=rejection.reason.value,
        min_order_amount=str(rejection.min_order_amount) if rejection.min_order_amount is not None else None,
    )


def to_response(result: SubmitOrderResult) -> SubmitOrderResponse:
    pricing = result.pricing
    return SubmitOrderResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        status=result.status,
        payment_status=result.payment_status,
        pricing=PricingSchema(
            subtotal=pricing.subtotal,
            delivery_cost=pricing.delivery_cost,
            promo_discount=pricing.promo_discount,
            points_discount=pricing.points_discount,
            total=pricing.total,
        ),
        points_earned=result.points_earned,
        points_spent=result.points_spent,
        payment_url=result.payment_url,
        payment_error=result.payment_error,
        duplicate=result.duplicate,
    )


@router.post(
    "/orders",
    response_model=SubmitOrderResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        200: {"description": "Submission token already used; the existing order is returned"},
        409: {"description": "Submission token already used for another buyer's order"},
        422: {"description": "Missing details, empty cart, or promo code rejected"},
        503: {"description": "Order could not be created; nothing was saved"},
    },
    summary="Submit order",
    description="Creates an order from the cart or a single item, applying promo code and loyalty points.",
)
async def submit_order(
    data: SubmitOrderRequest,
    auth: DualAuth,
    response: Response,
) -> SubmitOrderResponse:
    """Submit the checkout form.

    Anonymous sessions can order but neither spend nor earn points.
    When payment_url is set the frontend should redirect to it; when
    payment_error is set the order exists and can be paid later.

    Args:
        data: Checkout form contents.
        auth: Dual auth context (user or session).
        response: Response, whose status is 200 for a repeated submission.

    Returns:
        SubmitOrderResponse: The order, pricing and payment handoff.

    Raises:
        ValidationError: 422 if details are missing or points are unavailable.
        ConflictError: 409 if the submission token belongs to someone else's order.
        PromoRejectedError: 422 if the promo code does not apply.
        OrderNotCreatedError: 503 if the order could not be stored.
    """
    service = CheckoutService()
    profile_id = await get_profile_id(auth)

    try:
        result = await service.submit_order(
            data,
            profile_id=profile_id,
            session_id=auth.session_id,
        )
    except checkout.CheckoutValidationError as e:
        raise ValidationError(e.message, e.details) from e
    except checkout.PromoRejectedError as e:
        raise promo_rejected(e.rejection) from e
    except checkout.SubmissionConflictError as e:
        raise ConflictError() from e
    except checkout.OrderPersistenceError as e:
        raise OrderNotCreatedError() from e

    if result.duplicate:
        response.status_code = status.HTTP_200_OK

    return to_response(result)


@router.post(
    "/promo/validate",
    response_model=PromoValidateResponse,
    summary="Validate promo code",
    description="Checks a promo code against the current subtotal without consuming a use.",
)
async def validate_promo(data: PromoValidateRequest) -> PromoValidateResponse:
    """Validate a promo code for live feedback in the checkout form.

    Args:
        data: Code and current subtotal.

    Returns:
        PromoValidateResponse: Discount when valid, reason when not.
    """
    service = CheckoutService()
    result = await service.validate_promo(data.code, data.subtotal)

    if isinstance(result, PromoRejection):
        return PromoValidateResponse(
            valid=False,
            code=result.code,
            reason=result.reason.value,
            message=result.message,
            min_order_amount=result.min_order_amount,
        )

    return PromoValidateResponse(
        valid=True,
        code=result.code,
        discount=result.discount,
        percent=result.percent,
        amount=result.amount,
    )
