"""Persistent cart business logic service."""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.core.supabase import get_supabase_client
from src.models.cart import CartItem
from src.services.pricing import CartLine, to_money

logger = logging.getLogger(__name__)


class CartService:
    """Service for the cart owned by a customer profile or an anonymous session."""

    def __init__(self) -> None:
        """Initialize cart service with Supabase client."""
        self.client = get_supabase_client()

    @staticmethod
    def _owner_column(profile_id: UUID | None, session_id: UUID | None) -> tuple[str, str]:
        """Pick the ownership column, preferring the profile.

        Raises:
            ValueError: If neither owner is given.
        """
        if profile_id:
            return "profile_id", str(profile_id)
        if session_id:
            return "session_id", str(session_id)
        raise ValueError("Cart owner is required")

    @staticmethod
    def to_line(row: CartItem) -> CartLine:
        """Convert a cart_items row to a checkout line."""
        return CartLine(
            product_id=UUID(str(row["product_id"])) if row.get("product_id") else None,
            name=row["name"],
            unit_price=to_money(row["unit_price"]),
            quantity=int(row["quantity"]),
            image_ref=row.get("image_ref"),
            slug=row.get("slug"),
        )

    async def get_items(
        self,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> list[CartItem]:
        """Get all cart rows of an owner, oldest first.

        Args:
            profile_id: Owning profile for signed-in customers.
            session_id: Owning session for anonymous visitors.

        Returns:
            list[CartItem]: cart_items rows.
        """
        column, value = self._owner_column(profile_id, session_id)
        response = (
            self.client.table("cart_items")
            .select("*")
            .eq(column, value)
            .order("created_at")
            .execute()
        )

        return response.data or []

    async def get_lines(
        self,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> list[CartLine]:
        """Get the owner's cart as checkout lines."""
        return [self.to_line(row) for row in await self.get_items(profile_id, session_id)]

    async def add_item(
        self,
        product_id: UUID,
        name: str,
        unit_price: Decimal,
        quantity: int = 1,
        image_ref: str | None = None,
        slug: str | None = None,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> dict[str, Any]:
        """Add a product to the cart, increasing quantity if it is already there.

        Returns:
            dict: The stored cart row.
        """
        column, value = self._owner_column(profile_id, session_id)
        existing = (
            self.client.table("cart_items")
            .select("*")
            .eq(column, value)
            .eq("product_id", str(product_id))
            .limit(1)
            .execute()
        )

        if existing.data:
            row = existing.data[0]
            response = (
                self.client.table("cart_items")
                .update({"quantity": int(row["quantity"]) + quantity})
                .eq("id", row["id"])
                .execute()
            )
            return response.data[0]

        item_data = {
            column: value,
            "product_id": str(product_id),
            "name": name,
            "unit_price": str(to_money(unit_price)),
            "quantity": quantity,
            "image_ref": image_ref,
            "slug": slug,
        }
        response = self.client.table("cart_items").insert(item_data).execute()
        return response.data[0]

    async def update_quantity(
        self,
        product_id: UUID,
        quantity: int,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> dict[str, Any] | None:
        """Set the quantity of a cart line.

        Returns:
            dict | None: The updated row or None if the product is not in the cart.
        """
        column, value = self._owner_column(profile_id, session_id)
        response = (
            self.client.table("cart_items")
            .update({"quantity": quantity})
            .eq(column, value)
            .eq("product_id", str(product_id))
            .execute()
        )

        return response.data[0] if response.data else None

    async def remove_item(
        self,
        product_id: UUID,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> bool:
        """Remove a product from the cart.

        Returns:
            bool: True if a line was removed.
        """
        column, value = self._owner_column(profile_id, session_id)
        response = (
            self.client.table("cart_items")
            .delete()
            .eq(column, value)
            .eq("product_id", str(product_id))
            .execute()
        )

        return bool(response.data)

    async def clear(
        self,
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> int:
        """Remove every line from the owner's cart.

        Returns:
            int: Number of lines removed.
        """
        column, value = self._owner_column(profile_id, session_id)
        response = (
            self.client.table("cart_items")
            .delete()
            .eq(column, value)
            .execute()
        )

        removed = len(response.data) if response.data else 0
        logger.info("Cleared %d cart lines for %s %s", removed, column, value)
        return removed

    async def remove_products(
        self,
        product_ids: list[str],
        profile_id: UUID | None = None,
        session_id: UUID | None = None,
    ) -> int:
        """Remove the lines for the given products from the owner's cart.

        Returns:
            int: Number of lines removed.
        """
        if not product_ids:
            return 0

        column, value = self._owner_column(profile_id, session_id)
        response = (
            self.client.table("cart_items")
            .delete()
            .eq(column, value)
            .in_("product_id", [str(product_id) for product_id in product_ids])
            .execute()
        )

        removed = len(response.data) if response.data else 0
        logger.info("Removed %d ordered cart lines for %s %s", removed, column, value)
        return removed
