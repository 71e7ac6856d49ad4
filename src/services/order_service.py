"""Order reads, payment recovery and integrity checks."""

import logging
from typing import Any
from uuid import UUID

from src.core.config import get_settings
from src.core.supabase import fetch_all_rows, get_supabase_client
from src.models.order import Order
from src.services.cart_service import CartService
from src.services.payment_service import PaymentService
from src.services.pricing import to_money

logger = logging.getLogger(__name__)

ORDER_WITH_ITEMS = "*, order_items(*)"


def is_orphaned(order: dict[str, Any], items: list[dict[str, Any]]) -> bool:
    """A pending order without lines points at an interrupted submission."""
    return order.get("status") == "pending" and len(items) == 0


class OrderService:
    """Service for reading orders and settling their payment."""

    def __init__(self) -> None:
        """Initialize order service with clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.payment_service = PaymentService()
        self.cart_service = CartService()

    async def get_order(self, order_id: UUID) -> Order | None:
        """Get an order with its lines.

        Args:
            order_id: The order's UUID.

        Returns:
            Order | None: The order (lines under "order_items") or None if not found.
        """
        response = (
            self.client.table("orders")
            .select(ORDER_WITH_ITEMS)
            .eq("id", str(order_id))
            .maybe_single()
            .execute()
        )

        return response.data if response and response.data else None

    async def list_orders(
        self,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> list[dict[str, Any]]:
        """List an owner's orders, newest first.

        Args:
            profile_id: Owning profile for signed-in customers.
            session_id: Owning session for anonymous visitors.

        Returns:
            list[dict]: Orders with their lines.
        """
        if profile_id:
            column, value = "profile_id", str(profile_id)
        elif session_id:
            column, value = "session_id", str(session_id)
        else:
            return []

        response = (
            self.client.table("orders")
            .select(ORDER_WITH_ITEMS)
            .eq(column, value)
            .order("created_at", desc=True)
            .execute()
        )

        return response.data or []

    @staticmethod
    def is_owner(
        order: dict[str, Any],
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> bool:
        """Check if a profile or session owns an order."""
        if profile_id and order.get("profile_id") == str(profile_id):
            return True
        if session_id and order.get("session_id") == str(session_id):
            return True
        return False

    async def resume_payment(self, order: dict[str, Any]) -> str:
        """Start payment again for an order that was saved but not paid.

        Args:
            order: The order row.

        Returns:
            str: Redirect URL of the hosted payment page.

        Raises:
            ValueError: If the order is not awaiting an online payment.
            PaymentProviderError: If the provider cannot start the payment.
        """
        if order.get("payment_status") not in ("pending", "failed"):
            raise ValueError("Order is not awaiting payment")
        if order.get("status") != "pending":
            raise ValueError("Order can no longer be paid online")
        if not self.settings.requires_online_payment(order["payment_method"]):
            raise ValueError("Order payment method does not support online payment")

        session = await self.payment_service.start_order_payment(
            UUID(str(order["id"])),
            to_money(order["total_amount"]),
            previous_session_id=order.get("payment_session_id"),
        )
        return session.redirect_url

    async def verify_payment(self, order: dict[str, Any]) -> dict[str, Any]:
        """Check the provider for the outcome of an order's payment.

        Used when the buyer returns from the hosted page, ahead of the
        webhook. Failed orders are checked too: a resumed payment may have
        succeeded on a newer session. A paid cart order also removes its
        products from the owner's cart.

        Args:
            order: The order row.

        Returns:
            dict: The order after applying the outcome.

        Raises:
            PaymentProviderError: If the provider cannot be reached.
        """
        session_id = order.get("payment_session_id")
        if order.get("payment_status") not in ("pending", "failed") or not session_id:
            return order

        outcome = await self.payment_service.fetch_session_outcome(session_id)
        updated = await self.payment_service.apply_outcome(str(order["id"]), outcome)
        if not updated:
            return order

        merged = {**order, **updated}
        if outcome == "paid":
            await self.clear_cart_for_order(merged)
        return merged

    async def get_ordered_product_ids(self, order: dict[str, Any]) -> list[str]:
        """Product ids on an order, read from its embedded lines or the database."""
        items = order.get("order_items")
        if items is None:
            response = (
                self.client.table("order_items")
                .select("product_id")
                .eq("order_id", str(order["id"]))
                .execute()
            )
            items = response.data or []
        return [str(item["product_id"]) for item in items if item.get("product_id")]

    async def clear_cart_for_order(self, order: dict[str, Any]) -> None:
        """Remove a paid cart order's products from the owner's cart.

        Items added to the cart while the buyer was on the payment page
        stay. Failures are logged only.
        """
        if order.get("checkout_source") != "cart":
            return

        profile_id = order.get("profile_id")
        session_id = order.get("session_id")
        if not profile_id and not session_id:
            return

        try:
            product_ids = await self.get_ordered_product_ids(order)
            if not product_ids:
                return
            await self.cart_service.remove_products(
                product_ids,
                profile_id=UUID(str(profile_id)) if profile_id else None,
                session_id=UUID(str(session_id)) if session_id else None,
            )
        except Exception as e:
            logger.error("Failed to clear cart after paying order %s: %s", order.get("id"), str(e))

    async def find_orphaned_orders(self) -> list[dict[str, Any]]:
        """List pending orders that have no lines.

        Returns:
            list[dict]: Orphaned orders, oldest first.
        """
        rows = fetch_all_rows(
            lambda: self.client.table("orders")
            .select("id, status, total_amount, created_at, order_items(id)")
            .eq("status", "pending")
            .order("created_at")
            .order("id")
        )

        orphaned = [order for order in rows if is_orphaned(order, order.get("order_items") or [])]
        if orphaned:
            logger.warning("Found %d pending orders without lines", len(orphaned))
        return orphaned
