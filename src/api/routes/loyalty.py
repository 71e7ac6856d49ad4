"""Loyalty API routes."""

from uuid import UUID

from fastapi import APIRouter

from src.api.deps import AuthContext, RequiredDualAuth, get_profile_id
from src.api.middleware.error_handler import AuthenticationError
from src.schemas.loyalty import LoyaltyResponse, LoyaltyTransactionSchema
from src.services.loyalty_service import LoyaltyService

router = APIRouter(prefix="/loyalty", tags=["loyalty"])


async def _require_profile(auth: AuthContext) -> UUID:
    profile_id = await get_profile_id(auth)
    if profile_id is None:
        raise AuthenticationError("Sign in to use loyalty points")
    return profile_id


@router.get(
    "",
    response_model=LoyaltyResponse,
    summary="Get loyalty balance",
    description="Returns the point balance and recent ledger entries of the signed-in customer.",
)
async def get_loyalty(auth: RequiredDualAuth) -> LoyaltyResponse:
    """Return balance and history.

    Raises:
        AuthenticationError: 401 for anonymous sessions, which do not collect points.
    """
    profile_id = await _require_profile(auth)
    service = LoyaltyService()

    balance = await service.get_balance(profile_id)
    history = await service.get_history(profile_id)

    return LoyaltyResponse(
        balance=balance,
        transactions=[LoyaltyTransactionSchema(**row) for row in history],
    )
