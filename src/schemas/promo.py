"""Promo code Pydantic schemas."""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PromoValidateRequest(BaseModel):
    """Schema for POST /checkout/promo/validate."""

    model_config = ConfigDict(from_attributes=True)

    code: str = Field(min_length=1, max_length=64, description="Promo code as typed")
    subtotal: Decimal = Field(ge=0, description="Current cart subtotal")


class PromoValidateResponse(BaseModel):
    """Outcome of promo validation for live feedback."""

    model_config = ConfigDict(from_attributes=True)

    valid: bool = Field(description="Whether the code applies")
    code: str = Field(description="Normalized code")
    discount: int | None = Field(default=None, description="Discount in currency units when valid")
    percent: Decimal | None = Field(default=None, description="Percent discount, if percentage based")
    amount: Decimal | None = Field(default=None, description="Fixed discount, if amount based")
    reason: str | None = Field(default=None, description="Rejection reason when invalid")
    message: str | None = Field(default=None, description="Human-readable rejection message")
    min_order_amount: Decimal | None = Field(default=None, description="Required minimum for below_minimum")
