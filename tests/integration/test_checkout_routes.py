"""Integration tests for checkout API endpoints."""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

from fastapi.testclient import TestClient

from src.services.checkout_service import (
    CheckoutValidationError,
    OrderPersistenceError,
    PromoRejectedError,
    SubmissionConflictError,
    SubmitOrderResult,
)
from src.services.pricing import compose_pricing
from src.services.promo_service import PromoDiscount, PromoRejection, PromoRejectionReason

SESSION_ID = "550e8400-e29b-41d4-a716-446655440000"
SESSION_TOKEN = "a" * 64
PROFILE_ID = "770e8400-e29b-41d4-a716-446655440000"

ORDER_ID = UUID("aa0e8400-e29b-41d4-a716-446655440000")

ORDER_BODY = {
    "submission_token": "tok-0123456789",
    "contact": {"name": "Ivan Petrov", "phone": "+79990000000", "email": "ivan@example.com"},
    "address": {"city": "Krasnodar", "street": "Lenina", "house": "10"},
    "delivery": {"provider": "cdek", "cost": "300", "eta_days": 3},
    "payment_method": "card",
}


def submit_result(**overrides) -> SubmitOrderResult:
    data = {
        "order_id": ORDER_ID,
        "status": "pending",
        "payment_status": "pending",
        "pricing": compose_pricing(Decimal("5000"), Decimal("300"), promo_discount=500),
        "points_earned": 0,
        "points_spent": 0,
        "payment_url": "https://checkout.stripe.com/cs_test_123",
    }
    data.update(overrides)
    return SubmitOrderResult(**data)


def mock_checkout_service(mock_cls: MagicMock, **submit_kwargs) -> AsyncMock:
    submit = AsyncMock(**submit_kwargs)
    mock_cls.return_value.submit_order = submit
    return submit


class TestSubmitOrder:
    """Tests for POST /api/v1/checkout/orders endpoint."""

    @patch("src.api.routes.checkout.CheckoutService")
    def test_creates_order_for_anonymous_session(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        submit = mock_checkout_service(mock_cls, return_value=submit_result())

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["order_id"] == str(ORDER_ID)
        assert data["order_number"] == "AA0E8400"
        assert data["payment_url"] == "https://checkout.stripe.com/cs_test_123"
        assert Decimal(data["pricing"]["total"]) == Decimal("4800")
        assert data["pricing"]["promo_discount"] == 500
        assert data["duplicate"] is False

        kwargs = submit.call_args.kwargs
        assert kwargs["profile_id"] is None
        assert kwargs["session_id"] == UUID(SESSION_ID)

    @patch("src.api.routes.checkout.CheckoutService")
    def test_signed_in_customer_orders_with_profile(
        self, mock_cls: MagicMock, client: TestClient, user_auth: MagicMock
    ) -> None:
        submit = mock_checkout_service(mock_cls, return_value=submit_result(points_earned=144))

        response = client.post(
            "/api/v1/checkout/orders",
            json={**ORDER_BODY, "points_to_redeem": 100},
            headers={"Authorization": "Bearer test-token"},
        )

        assert response.status_code == 201
        assert response.json()["points_earned"] == 144
        kwargs = submit.call_args.kwargs
        assert kwargs["profile_id"] == UUID(PROFILE_ID)
        assert kwargs["session_id"] is None

    @patch("src.api.routes.checkout.CheckoutService")
    def test_repeated_submission_returns_200(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        mock_checkout_service(mock_cls, return_value=submit_result(duplicate=True, payment_url=None))

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 200
        assert response.json()["duplicate"] is True

    @patch("src.api.routes.checkout.CheckoutService")
    def test_payment_error_is_part_of_success(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        mock_checkout_service(
            mock_cls,
            return_value=submit_result(payment_url=None, payment_error="Payment could not be started."),
        )

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 201
        assert response.json()["payment_error"] == "Payment could not be started."

    @patch("src.api.routes.checkout.CheckoutService")
    def test_missing_fields_return_422_with_details(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        mock_checkout_service(
            mock_cls,
            side_effect=CheckoutValidationError(
                "Checkout details are incomplete",
                [{"loc": ["contact", "phone"], "msg": "Contact phone is required", "type": "missing"}],
            ),
        )

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "validation_error"
        assert data["details"][0]["loc"] == ["contact", "phone"]

    @patch("src.api.routes.checkout.CheckoutService")
    def test_promo_below_minimum_returns_minimum(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        rejection = PromoRejection(
            code="SAVE10",
            reason=PromoRejectionReason.BELOW_MINIMUM,
            min_order_amount=Decimal("1500"),
        )
        mock_checkout_service(mock_cls, side_effect=PromoRejectedError(rejection))

        response = client.post(
            "/api/v1/checkout/orders",
            json={**ORDER_BODY, "promo_code": "save10"},
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error"] == "promo_rejected"
        assert data["details"][0]["type"] == "below_minimum"
        assert data["details"][0]["ctx"] == {"min_order_amount": "1500"}

    @patch("src.api.routes.checkout.CheckoutService")
    def test_persistence_failure_returns_503(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        mock_checkout_service(mock_cls, side_effect=OrderPersistenceError("Order could not be created"))

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 503
        data = response.json()
        assert data["error"] == "order_not_created"
        assert "try again" in data["message"]

    @patch("src.api.routes.checkout.CheckoutService")
    def test_token_used_by_another_buyer_returns_409(
        self, mock_cls: MagicMock, client: TestClient, session_auth: MagicMock
    ) -> None:
        mock_checkout_service(mock_cls, side_effect=SubmissionConflictError("tok-0123456789"))

        response = client.post(
            "/api/v1/checkout/orders",
            json=ORDER_BODY,
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "submission_conflict"
        assert "order_id" not in data

    def test_short_submission_token_rejected(self, client: TestClient, session_auth: MagicMock) -> None:
        response = client.post(
            "/api/v1/checkout/orders",
            json={**ORDER_BODY, "submission_token": "short"},
            headers={"x-session-token": SESSION_TOKEN},
        )

        assert response.status_code == 422


class TestValidatePromo:
    """Tests for POST /api/v1/checkout/promo/validate endpoint."""

    @patch("src.api.routes.checkout.CheckoutService")
    def test_valid_code(self, mock_cls: MagicMock, client: TestClient) -> None:
        mock_cls.return_value.validate_promo = AsyncMock(
            return_value=PromoDiscount(code="SAVE10", discount=200, percent=Decimal("10"))
        )

        response = client.post("/api/v1/checkout/promo/validate", json={"code": "save10", "subtotal": "2000"})

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["code"] == "SAVE10"
        assert data["discount"] == 200

    @patch("src.api.routes.checkout.CheckoutService")
    def test_rejected_code(self, mock_cls: MagicMock, client: TestClient) -> None:
        mock_cls.return_value.validate_promo = AsyncMock(
            return_value=PromoRejection(code="SAVE10", reason=PromoRejectionReason.USAGE_EXHAUSTED)
        )

        response = client.post("/api/v1/checkout/promo/validate", json={"code": "SAVE10", "subtotal": "2000"})

        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is False
        assert data["reason"] == "usage_exhausted"
        assert data["message"] == "Promo code usage limit reached"
