"""Cart API routes."""

from uuid import UUID

from fastapi import APIRouter, status

from src.api.deps import AuthContext, DualAuth, get_profile_id
from src.api.middleware.error_handler import NotFoundError
from src.schemas.cart import CartItemAdd, CartItemSchema, CartItemUpdate, CartResponse
from src.services.cart_service import CartService
from src.services.pricing import calculate_subtotal

router = APIRouter(prefix="/cart", tags=["cart"])


async def _owner(auth: AuthContext) -> dict[str, UUID | None]:
    profile_id = await get_profile_id(auth)
    return {"profile_id": profile_id, "session_id": None if profile_id else auth.session_id}


async def _cart_response(service: CartService, owner: dict[str, UUID | None]) -> CartResponse:
    lines = await service.get_lines(**owner)
    return CartResponse(
        items=[
            CartItemSchema(
                product_id=line.product_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                image_ref=line.image_ref,
                slug=line.slug,
            )
            for line in lines
        ],
        subtotal=calculate_subtotal(lines),
        item_count=sum(line.quantity for line in lines),
    )


@router.get("", response_model=CartResponse, summary="Get cart")
async def get_cart(auth: DualAuth) -> CartResponse:
    """Return the cart of the current customer or session."""
    service = CartService()
    return await _cart_response(service, await _owner(auth))


@router.post(
    "/items",
    response_model=CartResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add item to cart",
)
async def add_cart_item(data: CartItemAdd, auth: DualAuth) -> CartResponse:
    """Add a product, or raise its quantity if it is already in the cart."""
    service = CartService()
    owner = await _owner(auth)
    await service.add_item(
        product_id=data.product_id,
        name=data.name,
        unit_price=data.unit_price,
        quantity=data.quantity,
        image_ref=data.image_ref,
        slug=data.slug,
        **owner,
    )
    return await _cart_response(service, owner)


@router.patch("/items/{product_id}", response_model=CartResponse, summary="Change item quantity")
async def update_cart_item(product_id: UUID, data: CartItemUpdate, auth: DualAuth) -> CartResponse:
    """Set the quantity of a cart line.

    Raises:
        NotFoundError: 404 if the product is not in the cart.
    """
    service = CartService()
    owner = await _owner(auth)
    updated = await service.update_quantity(product_id, data.quantity, **owner)
    if not updated:
        raise NotFoundError("Item not in cart")
    return await _cart_response(service, owner)


@router.delete("/items/{product_id}", response_model=CartResponse, summary="Remove item from cart")
async def remove_cart_item(product_id: UUID, auth: DualAuth) -> CartResponse:
    """Remove a product from the cart.

    Raises:
        NotFoundError: 404 if the product is not in the cart.
    """
    service = CartService()
    owner = await _owner(auth)
    if not await service.remove_item(product_id, **owner):
        raise NotFoundError("Item not in cart")
    return await _cart_response(service, owner)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT, summary="Empty cart")
async def clear_cart(auth: DualAuth) -> None:
    """Remove every line from the cart."""
    service = CartService()
    await service.clear(**await _owner(auth))
