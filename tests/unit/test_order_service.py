"""Unit tests for OrderService."""

from collections.abc import Generator
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from src.services.order_service import OrderService, is_orphaned
from src.services.payment_service import PaymentSession

ORDER_ID = "aa0e8400-e29b-41d4-a716-446655440000"
PROFILE_ID = "770e8400-e29b-41d4-a716-446655440000"
SESSION_ID = "550e8400-e29b-41d4-a716-446655440000"
PRODUCT_ID = "990e8400-e29b-41d4-a716-446655440000"


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client."""
    return MagicMock()


@pytest.fixture
def mock_settings() -> MagicMock:
    """Create mock settings where only card payments go online."""
    settings = MagicMock()
    settings.requires_online_payment.side_effect = lambda method: method == "card"
    return settings


@pytest.fixture
def order_service(mock_supabase: MagicMock, mock_settings: MagicMock) -> Generator[OrderService, None, None]:
    """Create OrderService with mocked dependencies."""
    with patch("src.services.order_service.get_supabase_client", return_value=mock_supabase), \
         patch("src.services.payment_service.get_supabase_client", return_value=mock_supabase), \
         patch("src.services.cart_service.get_supabase_client", return_value=mock_supabase), \
         patch("src.services.payment_service.get_stripe", return_value=MagicMock()), \
         patch("src.services.order_service.get_settings", return_value=mock_settings):
        service = OrderService()

    with patch.object(service.cart_service, "remove_products", return_value=1):
        yield service


def make_order(**overrides) -> dict:
    order = {
        "id": ORDER_ID,
        "profile_id": None,
        "session_id": SESSION_ID,
        "checkout_source": "cart",
        "status": "pending",
        "payment_method": "card",
        "payment_status": "pending",
        "payment_session_id": "cs_test_123",
        "total_amount": "5300.00",
        "order_items": [{"id": "item-1", "product_id": PRODUCT_ID}],
    }
    order.update(overrides)
    return order


class TestOrphanDetection:
    """Tests for orphaned order detection."""

    def test_pending_order_without_lines_is_orphaned(self) -> None:
        assert is_orphaned({"status": "pending"}, []) is True

    def test_order_with_lines_is_not_orphaned(self) -> None:
        assert is_orphaned({"status": "pending"}, [{"id": "item-1"}]) is False

    def test_settled_order_without_lines_is_not_flagged(self) -> None:
        assert is_orphaned({"status": "processing"}, []) is False

    @pytest.mark.asyncio
    async def test_find_orphaned_orders(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        """An order row whose line insert failed shows up in the integrity check."""
        response = MagicMock()
        response.data = [
            {"id": "o1", "status": "pending", "total_amount": "100.00", "created_at": "2026-10-18T10:00:00Z", "order_items": []},
            {"id": "o2", "status": "pending", "total_amount": "200.00", "created_at": "2026-10-18T11:00:00Z", "order_items": [{"id": "i1"}]},
        ]
        query = mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value
        query.range.return_value.execute.return_value = response

        orphaned = await order_service.find_orphaned_orders()

        assert [order["id"] for order in orphaned] == ["o1"]

    @pytest.mark.asyncio
    async def test_find_orphaned_orders_reads_past_first_page(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        full = MagicMock()
        full.data = [
            {"id": "o1", "status": "pending", "order_items": [{"id": "i1"}]},
            {"id": "o2", "status": "pending", "order_items": [{"id": "i2"}]},
        ]
        rest = MagicMock()
        rest.data = [{"id": "o3", "status": "pending", "order_items": []}]
        query = mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value
        query.range.return_value.execute.side_effect = [full, rest]

        with patch("src.core.supabase.PAGE_SIZE", 2):
            orphaned = await order_service.find_orphaned_orders()

        assert [order["id"] for order in orphaned] == ["o3"]
        assert [c.args for c in query.range.call_args_list] == [(0, 1), (2, 3)]


class TestOwnership:
    """Tests for list_orders and is_owner."""

    def test_is_owner_by_profile(self) -> None:
        order = make_order(profile_id=PROFILE_ID, session_id=None)

        assert OrderService.is_owner(order, profile_id=UUID(PROFILE_ID)) is True
        assert OrderService.is_owner(order, session_id=UUID(SESSION_ID)) is False

    def test_is_owner_by_session(self) -> None:
        assert OrderService.is_owner(make_order(), session_id=UUID(SESSION_ID)) is True

    @pytest.mark.asyncio
    async def test_list_orders_without_owner_is_empty(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        assert await order_service.list_orders() == []
        mock_supabase.table.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_orders_by_profile(self, order_service: OrderService, mock_supabase: MagicMock) -> None:
        response = MagicMock()
        response.data = [make_order(profile_id=PROFILE_ID)]
        mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = response

        orders = await order_service.list_orders(profile_id=UUID(PROFILE_ID))

        assert len(orders) == 1
        mock_supabase.table.return_value.select.return_value.eq.assert_called_once_with("profile_id", PROFILE_ID)


class TestResumePayment:
    """Tests for resume_payment."""

    @pytest.mark.asyncio
    async def test_starts_payment_for_unpaid_order(self, order_service: OrderService) -> None:
        payment = PaymentSession(session_id="cs_2", redirect_url="https://pay.example.com/cs_2")

        with patch.object(order_service.payment_service, "start_order_payment", return_value=payment) as mock_pay:
            url = await order_service.resume_payment(make_order(payment_status="failed"))

        assert url == "https://pay.example.com/cs_2"
        mock_pay.assert_awaited_once_with(
            UUID(ORDER_ID), Decimal("5300.00"), previous_session_id="cs_test_123"
        )

    @pytest.mark.asyncio
    async def test_rejects_paid_order(self, order_service: OrderService) -> None:
        with pytest.raises(ValueError, match="not awaiting payment"):
            await order_service.resume_payment(make_order(payment_status="paid"))

    @pytest.mark.asyncio
    async def test_rejects_offline_method(self, order_service: OrderService) -> None:
        with pytest.raises(ValueError, match="does not support online payment"):
            await order_service.resume_payment(make_order(payment_method="cash"))


class TestVerifyPayment:
    """Tests for verify_payment."""

    @pytest.mark.asyncio
    async def test_paid_cart_order_clears_cart(self, order_service: OrderService) -> None:
        with patch.object(order_service.payment_service, "fetch_session_outcome", return_value="paid"), \
             patch.object(
                 order_service.payment_service,
                 "apply_outcome",
                 return_value={"status": "processing", "payment_status": "paid"},
             ):
            order = await order_service.verify_payment(make_order())

        assert order["payment_status"] == "paid"
        assert order["status"] == "processing"
        order_service.cart_service.remove_products.assert_awaited_once_with(
            [PRODUCT_ID], profile_id=None, session_id=UUID(SESSION_ID)
        )

    @pytest.mark.asyncio
    async def test_paid_direct_order_keeps_cart(self, order_service: OrderService) -> None:
        with patch.object(order_service.payment_service, "fetch_session_outcome", return_value="paid"), \
             patch.object(
                 order_service.payment_service,
                 "apply_outcome",
                 return_value={"status": "processing", "payment_status": "paid"},
             ):
            await order_service.verify_payment(make_order(checkout_source="direct"))

        order_service.cart_service.remove_products.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_settled_order_is_not_rechecked(self, order_service: OrderService) -> None:
        with patch.object(order_service.payment_service, "fetch_session_outcome") as mock_fetch:
            order = await order_service.verify_payment(make_order(payment_status="paid"))

        mock_fetch.assert_not_awaited()
        assert order["payment_status"] == "paid"

    @pytest.mark.asyncio
    async def test_failed_order_paid_on_new_session_is_settled(self, order_service: OrderService) -> None:
        """A buyer whose first attempt failed and who paid on retry gets the order settled."""
        order = make_order(payment_status="failed", payment_session_id="cs_retry")

        with patch.object(order_service.payment_service, "fetch_session_outcome", return_value="paid") as mock_fetch, \
             patch.object(
                 order_service.payment_service,
                 "apply_outcome",
                 return_value={"status": "processing", "payment_status": "paid"},
             ) as mock_apply:
            result = await order_service.verify_payment(order)

        mock_fetch.assert_awaited_once_with("cs_retry")
        mock_apply.assert_awaited_once_with(ORDER_ID, "paid")
        assert result["payment_status"] == "paid"
        assert result["status"] == "processing"


class TestClearCartForOrder:
    """Tests for clear_cart_for_order."""

    @pytest.mark.asyncio
    async def test_reads_lines_when_order_has_none_embedded(
        self, order_service: OrderService, mock_supabase: MagicMock
    ) -> None:
        """Webhook orders come without lines; only the ordered products leave the cart."""
        response = MagicMock()
        response.data = [{"product_id": PRODUCT_ID}, {"product_id": None}]
        mock_supabase.table.return_value.select.return_value.eq.return_value.execute.return_value = response
        order = make_order(profile_id=PROFILE_ID)
        del order["order_items"]

        await order_service.clear_cart_for_order(order)

        mock_supabase.table.return_value.select.return_value.eq.assert_called_once_with("order_id", ORDER_ID)
        order_service.cart_service.remove_products.assert_awaited_once_with(
            [PRODUCT_ID], profile_id=UUID(PROFILE_ID), session_id=UUID(SESSION_ID)
        )

    @pytest.mark.asyncio
    async def test_order_without_catalog_products_leaves_cart(self, order_service: OrderService) -> None:
        await order_service.clear_cart_for_order(make_order(order_items=[{"id": "item-1", "product_id": None}]))

        order_service.cart_service.remove_products.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_logged_only(self, order_service: OrderService) -> None:
        order_service.cart_service.remove_products.side_effect = RuntimeError("network")

        await order_service.clear_cart_for_order(make_order())

        order_service.cart_service.remove_products.assert_awaited_once()
