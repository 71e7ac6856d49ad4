"""Cart Pydantic schemas."""

from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class CartItemAdd(BaseModel):
    """Schema for POST /cart/items."""

    product_id: UUID = Field(description="Product UUID")
    name: str = Field(min_length=1, description="Product name")
    unit_price: Decimal = Field(ge=0, description="Unit price")
    quantity: int = Field(default=1, ge=1, description="Quantity to add")
    image_ref: str | None = Field(default=None, description="Product image reference")
    slug: str | None = Field(default=None, description="Product slug")


class CartItemUpdate(BaseModel):
    """Schema for PATCH /cart/items/{product_id}."""

    quantity: int = Field(ge=1, description="New quantity")


class CartItemSchema(BaseModel):
    """A single cart line."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID = Field(description="Product UUID")
    name: str = Field(description="Product name")
    unit_price: Decimal = Field(description="Unit price")
    quantity: int = Field(description="Quantity")
    image_ref: str | None = Field(default=None, description="Product image reference")
    slug: str | None = Field(default=None, description="Product slug")


class CartResponse(BaseModel):
    """Cart contents with totals."""

    model_config = ConfigDict(from_attributes=True)

    items: list[CartItemSchema] = Field(description="Cart lines")
    subtotal: Decimal = Field(description="Sum of lines")
    item_count: int = Field(description="Total quantity across lines")
