"""Back-office API routes."""

import logging

from fastapi import APIRouter

from src.api.deps import AdminUser
from src.schemas.admin import BalanceDriftSchema, IntegrityReport, OrphanedOrderSchema
from src.services.loyalty_service import LoyaltyService
from src.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/integrity",
    response_model=IntegrityReport,
    summary="Checkout integrity report",
    description="Lists pending orders without lines and profiles whose balance disagrees with the ledger.",
)
async def integrity_report(user: AdminUser) -> IntegrityReport:
    """Run the checkout data integrity checks.

    Args:
        user: Admin user context.

    Returns:
        IntegrityReport: Orphaned orders and balance drift.
    """
    orphaned = await OrderService().find_orphaned_orders()
    drift = await LoyaltyService().find_balance_drift()

    report = IntegrityReport(
        orphaned_orders=[OrphanedOrderSchema(**order) for order in orphaned],
        balance_drift=[BalanceDriftSchema(**entry) for entry in drift],
    )
    logger.info(
        "Integrity check by %s: healthy=%s orphaned=%d drift=%d",
        user.user_id,
        report.healthy,
        len(report.orphaned_orders),
        len(report.balance_drift),
    )
    return report
