"""
Cart Endpoints

A customer's cart holds items from a single restaurant. Checkout turns
it into an order and empties it in one transaction.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import require_roles
from servesoft.core.config import get_settings
from servesoft.database import get_db
from servesoft.models import Cart, CartItem, MenuItem, User, UserRole
from servesoft.schemas import (
    CartItemAdd,
    CartItemResponse,
    CartItemUpdate,
    CartResponse,
    CheckoutRequest,
    OrderCreateResponse,
)
from servesoft.services.ordering import LineRequest, place_order

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cart", tags=["Cart"])

customer_only = require_roles(UserRole.CUSTOMER)


async def get_or_create_cart(db: AsyncSession, customer: User) -> Cart:
    result = await db.execute(select(Cart).where(Cart.customer_id == customer.id))
    cart = result.scalar_one_or_none()
    if cart is None:
        cart = Cart(customer_id=customer.id, items=[])
        db.add(cart)
        await db.flush()
    return cart


def cart_response(cart: Cart) -> CartResponse:
    items = [
        CartItemResponse(
            id=item.id,
            menu_item_id=item.menu_item_id,
            name=item.menu_item.name,
            price=item.menu_item.price,
            quantity=item.quantity,
            notes=item.notes,
            line_total=round(item.menu_item.price * item.quantity, 2),
        )
        for item in cart.items
    ]
    return CartResponse(
        id=cart.id,
        restaurant_id=cart.restaurant_id,
        items=items,
        total_amount=round(sum(i.line_total for i in items), 2),
    )


def find_cart_item(cart: Cart, cart_item_id: int) -> CartItem:
    for item in cart.items:
        if item.id == cart_item_id:
            return item
    raise HTTPException(status_code=404, detail=f"Cart item #{cart_item_id} not found")


def drop_item(cart: Cart, item: CartItem) -> None:
    cart.items.remove(item)
    if not cart.items:
        cart.restaurant_id = None


@router.get("", response_model=CartResponse)
async def get_cart(
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await get_or_create_cart(db, customer)
    await db.commit()
    return cart_response(cart)


@router.post("/items", response_model=CartResponse, status_code=201)
async def add_item(
    data: CartItemAdd,
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    """
    Add a menu item; adding one already in the cart increases its quantity.

    Items from a second restaurant are refused with 409 unless ``replace``
    is set, which empties the cart first.
    """
    menu_item = await db.get(MenuItem, data.menu_item_id)
    if menu_item is None:
        raise HTTPException(status_code=404, detail=f"Menu item #{data.menu_item_id} not found")
    if not menu_item.is_available:
        raise HTTPException(status_code=400, detail=f"{menu_item.name} is currently unavailable")

    cart = await get_or_create_cart(db, customer)

    if cart.items and cart.restaurant_id != menu_item.restaurant_id:
        if not data.replace:
            raise HTTPException(
                status_code=409,
                detail="Cart holds items from another restaurant; set replace=true to start over"
            )
        logger.info(f"Cart #{cart.id}: switching restaurant, dropping {len(cart.items)} items")
        cart.items.clear()

    cart.restaurant_id = menu_item.restaurant_id

    existing = next((i for i in cart.items if i.menu_item_id == menu_item.id), None)
    if existing is not None:
        existing.quantity += data.quantity
        if data.notes:
            existing.notes = data.notes
    else:
        cart.items.append(CartItem(
            menu_item_id=menu_item.id,
            menu_item=menu_item,
            quantity=data.quantity,
            notes=data.notes,
        ))

    await db.commit()
    return cart_response(cart)


@router.put("/items/{cart_item_id}", response_model=CartResponse)
async def update_item(
    cart_item_id: int,
    data: CartItemUpdate,
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    """Set an item's quantity; zero or less removes it."""
    cart = await get_or_create_cart(db, customer)
    item = find_cart_item(cart, cart_item_id)

    if data.quantity <= 0:
        drop_item(cart, item)
    else:
        item.quantity = data.quantity

    await db.commit()
    return cart_response(cart)


@router.delete("/items/{cart_item_id}", response_model=CartResponse)
async def remove_item(
    cart_item_id: int,
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await get_or_create_cart(db, customer)
    drop_item(cart, find_cart_item(cart, cart_item_id))

    await db.commit()
    return cart_response(cart)


@router.delete("", response_model=CartResponse)
async def clear_cart(
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> CartResponse:
    cart = await get_or_create_cart(db, customer)
    cart.items.clear()
    cart.restaurant_id = None

    await db.commit()
    return cart_response(cart)


@router.post("/checkout", response_model=OrderCreateResponse, status_code=201)
async def checkout(
    data: CheckoutRequest,
    customer: User = Depends(customer_only),
    db: AsyncSession = Depends(get_db),
) -> OrderCreateResponse:
    cart = await get_or_create_cart(db, customer)
    if not cart.items:
        raise HTTPException(status_code=400, detail="Cart is empty")

    lines = [
        LineRequest(menu_item_id=i.menu_item_id, quantity=i.quantity, notes=i.notes)
        for i in cart.items
    ]
    order = await place_order(db, customer, cart.restaurant_id, lines, data, cart=cart)

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order_id=order.id,
        order_code=order.order_code,
        order_type=order.order_type,
        total_amount=order.total_amount,
        currency=settings.currency,
    )
