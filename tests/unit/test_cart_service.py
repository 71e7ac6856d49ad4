"""Unit tests for CartService."""

from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest

from src.services.cart_service import CartService

PROFILE_ID = UUID("770e8400-e29b-41d4-a716-446655440000")
SESSION_ID = UUID("550e8400-e29b-41d4-a716-446655440000")
PRODUCT_ID = UUID("660e8400-e29b-41d4-a716-446655440000")


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client."""
    return MagicMock()


@pytest.fixture
def cart_service(mock_supabase: MagicMock) -> CartService:
    """Create CartService with mocked dependencies."""
    with patch("src.services.cart_service.get_supabase_client", return_value=mock_supabase):
        return CartService()


def cart_row(**overrides) -> dict:
    row = {
        "id": "bb0e8400-e29b-41d4-a716-446655440000",
        "session_id": str(SESSION_ID),
        "product_id": str(PRODUCT_ID),
        "name": "Seed drill",
        "unit_price": "2500.00",
        "quantity": 2,
        "image_ref": "products/seed-drill.jpg",
        "slug": "seed-drill",
    }
    row.update(overrides)
    return row


class TestOwner:
    """Tests for owner resolution."""

    def test_profile_preferred_over_session(self) -> None:
        assert CartService._owner_column(PROFILE_ID, SESSION_ID) == ("profile_id", str(PROFILE_ID))

    def test_session_owner(self) -> None:
        assert CartService._owner_column(None, SESSION_ID) == ("session_id", str(SESSION_ID))

    def test_owner_required(self) -> None:
        with pytest.raises(ValueError):
            CartService._owner_column(None, None)


class TestGetLines:
    """Tests for reading the cart."""

    @pytest.mark.asyncio
    async def test_rows_become_lines(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        response = MagicMock()
        response.data = [cart_row()]
        mock_supabase.table.return_value.select.return_value.eq.return_value.order.return_value.execute.return_value = response

        lines = await cart_service.get_lines(session_id=SESSION_ID)

        assert len(lines) == 1
        assert lines[0].product_id == PRODUCT_ID
        assert lines[0].unit_price == Decimal("2500.00")
        assert lines[0].line_total == Decimal("5000.00")
        mock_supabase.table.return_value.select.return_value.eq.assert_called_once_with("session_id", str(SESSION_ID))


class TestAddItem:
    """Tests for add_item."""

    @pytest.mark.asyncio
    async def test_inserts_new_line(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        existing = MagicMock()
        existing.data = []
        mock_supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value.execute.return_value = existing
        inserted = MagicMock()
        inserted.data = [cart_row(quantity=1)]
        mock_supabase.table.return_value.insert.return_value.execute.return_value = inserted

        row = await cart_service.add_item(
            product_id=PRODUCT_ID,
            name="Seed drill",
            unit_price=Decimal("2500"),
            session_id=SESSION_ID,
        )

        assert row["quantity"] == 1
        payload = mock_supabase.table.return_value.insert.call_args.args[0]
        assert payload["session_id"] == str(SESSION_ID)
        assert payload["unit_price"] == "2500.00"

    @pytest.mark.asyncio
    async def test_increments_existing_line(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        existing = MagicMock()
        existing.data = [cart_row(quantity=2)]
        mock_supabase.table.return_value.select.return_value.eq.return_value.eq.return_value.limit.return_value.execute.return_value = existing
        updated = MagicMock()
        updated.data = [cart_row(quantity=5)]
        mock_supabase.table.return_value.update.return_value.eq.return_value.execute.return_value = updated

        row = await cart_service.add_item(
            product_id=PRODUCT_ID,
            name="Seed drill",
            unit_price=Decimal("2500"),
            quantity=3,
            session_id=SESSION_ID,
        )

        assert row["quantity"] == 5
        mock_supabase.table.return_value.update.assert_called_once_with({"quantity": 5})
        mock_supabase.table.return_value.insert.assert_not_called()


class TestRemoveAndClear:
    """Tests for remove_item, remove_products and clear."""

    @pytest.mark.asyncio
    async def test_remove_missing_item(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        response = MagicMock()
        response.data = []
        mock_supabase.table.return_value.delete.return_value.eq.return_value.eq.return_value.execute.return_value = response

        assert await cart_service.remove_item(PRODUCT_ID, session_id=SESSION_ID) is False

    @pytest.mark.asyncio
    async def test_clear_returns_removed_count(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        response = MagicMock()
        response.data = [cart_row(), cart_row(product_id="other")]
        mock_supabase.table.return_value.delete.return_value.eq.return_value.execute.return_value = response

        assert await cart_service.clear(profile_id=PROFILE_ID) == 2
        mock_supabase.table.return_value.delete.return_value.eq.assert_called_once_with("profile_id", str(PROFILE_ID))

    @pytest.mark.asyncio
    async def test_remove_products_only_deletes_ordered_lines(
        self, cart_service: CartService, mock_supabase: MagicMock
    ) -> None:
        response = MagicMock()
        response.data = [cart_row()]
        owner_filter = mock_supabase.table.return_value.delete.return_value.eq
        owner_filter.return_value.in_.return_value.execute.return_value = response

        removed = await cart_service.remove_products([str(PRODUCT_ID)], session_id=SESSION_ID)

        assert removed == 1
        owner_filter.assert_called_once_with("session_id", str(SESSION_ID))
        owner_filter.return_value.in_.assert_called_once_with("product_id", [str(PRODUCT_ID)])

    @pytest.mark.asyncio
    async def test_remove_no_products_is_a_no_op(self, cart_service: CartService, mock_supabase: MagicMock) -> None:
        assert await cart_service.remove_products([], profile_id=PROFILE_ID) == 0
        mock_supabase.table.assert_not_called()
