"""Loyalty points: redemption limits, accrual, balance and ledger reads."""

import logging
import math
from collections import defaultdict
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.core.supabase import fetch_all_rows, get_supabase_client
from src.models.loyalty import LoyaltyTransaction

logger = logging.getLogger(__name__)

# Share of the pre-discount subtotal that points may cover
MAX_REDEEM_SHARE = Decimal("0.5")
# Share of the charged total returned as points
EARN_RATE = Decimal("0.03")


def max_redeemable(balance: int, subtotal: Decimal) -> int:
    """Most points that can be spent on an order.

    Never more than the balance, never more than half the subtotal.
    """
    return max(0, min(balance, math.floor(Decimal(subtotal) * MAX_REDEEM_SHARE)))


def redemption_discount(points_requested: int, balance: int, subtotal: Decimal) -> int:
    """Clamp a redemption request into [0, max_redeemable(balance, subtotal)].

    1 point = 1 currency unit, so the result is also the discount.
    """
    return min(max(points_requested, 0), max_redeemable(balance, subtotal))


def earned_points(final_total: Decimal) -> int:
    """Points earned for an order: 3% of the amount actually charged, floored."""
    return max(0, math.floor(Decimal(final_total) * EARN_RATE))


class LoyaltyService:
    """Service for reading loyalty balances and the points ledger."""

    def __init__(self) -> None:
        """Initialize loyalty service with Supabase client."""
        self.client = get_supabase_client()

    async def get_balance(self, profile_id: UUID) -> int:
        """Get the cached point balance of a profile.

        Args:
            profile_id: The profile's UUID.

        Returns:
            int: Current balance, 0 when the profile has none.
        """
        response = (
            self.client.table("profiles")
            .select("loyalty_points")
            .eq("id", str(profile_id))
            .maybe_single()
            .execute()
        )

        if not response or not response.data:
            return 0
        return int(response.data.get("loyalty_points") or 0)

    async def get_history(self, profile_id: UUID, limit: int = 50) -> list[LoyaltyTransaction]:
        """Get the most recent ledger entries of a profile.

        Args:
            profile_id: The profile's UUID.
            limit: Maximum number of entries.

        Returns:
            list[LoyaltyTransaction]: Ledger rows, newest first.
        """
        response = (
            self.client.table("loyalty_transactions")
            .select("*")
            .eq("profile_id", str(profile_id))
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )

        return response.data or []

    async def ledger_balance(self, profile_id: UUID) -> int:
        """Recompute a balance from the ledger.

        Args:
            profile_id: The profile's UUID.

        Returns:
            int: Sum of all ledger entries for the profile.
        """
        rows = fetch_all_rows(
            lambda: self.client.table("loyalty_transactions")
            .select("points")
            .eq("profile_id", str(profile_id))
            .order("id")
        )

        return sum(int(row["points"]) for row in rows)

    async def find_balance_drift(self) -> list[dict[str, Any]]:
        """List profiles whose cached balance differs from their ledger sum.

        Returns:
            list[dict]: Entries with profile_id, cached and ledger balances.
        """
        profiles = fetch_all_rows(
            lambda: self.client.table("profiles").select("id, loyalty_points").order("id")
        )
        entries = fetch_all_rows(
            lambda: self.client.table("loyalty_transactions").select("profile_id, points").order("id")
        )

        sums: dict[str, int] = defaultdict(int)
        for entry in entries:
            sums[str(entry["profile_id"])] += int(entry["points"])

        drift = []
        for profile in profiles:
            cached = int(profile.get("loyalty_points") or 0)
            ledger = sums.get(str(profile["id"]), 0)
            if cached != ledger:
                drift.append(
                    {
                        "profile_id": str(profile["id"]),
                        "cached_balance": cached,
                        "ledger_balance": ledger,
                    }
                )

        if drift:
            logger.warning("Found %d profiles with loyalty balance drift", len(drift))
        return drift
