"""
Order Placement Service

Builds an order and its line items from menu rows in a single unit of
work. The caller owns the transaction: nothing is visible until it
commits, and a rollback leaves no partial order behind.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.core.config import get_settings
from servesoft.models import (
    Cart,
    MenuItem,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Restaurant,
    Table,
    User,
)
from servesoft.schemas import OrderDetails

settings = get_settings()
logger = logging.getLogger(__name__)

ORDER_CODE_ATTEMPTS = 5


@dataclass
class LineRequest:
    """One requested line: which menu item, how many, kitchen notes."""
    menu_item_id: int
    quantity: int
    notes: Optional[str] = None


# =============================================================================
# PRICING
# =============================================================================

def calculate_order_totals(
    line_subtotals: Iterable[float],
    order_type: OrderType,
    delivery_fee_amount: float,
) -> dict[str, float]:
    """Calculate order subtotal, fees, and total."""
    subtotal = round(sum(line_subtotals), 2)
    service_fee = round(subtotal * settings.service_fee_rate, 2)
    delivery_fee = round(delivery_fee_amount, 2) if order_type == OrderType.DELIVERY else 0.0
    total = round(subtotal + service_fee + delivery_fee, 2)

    return {
        "subtotal": subtotal,
        "service_fee": service_fee,
        "delivery_fee": delivery_fee,
        "total_amount": total,
    }


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# =============================================================================
# LOOKUPS
# =============================================================================

async def generate_order_code(db: AsyncSession) -> str:
    """Short unique code customers quote at the counter."""
    for _ in range(ORDER_CODE_ATTEMPTS):
        code = f"ORD-{secrets.token_hex(4).upper()}"
        existing = await db.execute(select(Order.id).where(Order.order_code == code))
        if existing.scalar_one_or_none() is None:
            return code
    raise HTTPException(status_code=500, detail="Could not allocate an order code")


async def load_order(db: AsyncSession, order_id: int) -> Optional[Order]:
    """Fetch an order with its line items, bypassing stale identity-map state."""
    result = await db.execute(
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_order_or_404(db: AsyncSession, order_id: int) -> Order:
    order = await load_order(db, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
    return order


async def get_open_restaurant(db: AsyncSession, restaurant_id: int) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail=f"Restaurant #{restaurant_id} not found")
    if not restaurant.is_active:
        raise HTTPException(status_code=400, detail=f"{restaurant.name} is not accepting orders")
    return restaurant


async def _load_menu_items(
    db: AsyncSession,
    restaurant_id: int,
    menu_item_ids: set[int],
) -> dict[int, MenuItem]:
    result = await db.execute(
        select(MenuItem).where(
            MenuItem.id.in_(menu_item_ids),
            MenuItem.restaurant_id == restaurant_id,
        )
    )
    found = {item.id: item for item in result.scalars().all()}

    missing = sorted(menu_item_ids - found.keys())
    if missing:
        raise HTTPException(
            status_code=400,
            detail=f"Menu items {missing} are not on this restaurant's menu"
        )

    unavailable = sorted(item.name for item in found.values() if not item.is_available)
    if unavailable:
        raise HTTPException(
            status_code=400,
            detail=f"Currently unavailable: {', '.join(unavailable)}"
        )
    return found


async def _check_fulfilment(
    db: AsyncSession,
    restaurant: Restaurant,
    details: OrderDetails,
) -> None:
    if details.order_type == OrderType.TABLE:
        table = await db.get(Table, details.table_id)
        if table is None or table.restaurant_id != restaurant.id:
            raise HTTPException(
                status_code=400,
                detail=f"Table #{details.table_id} does not belong to {restaurant.name}"
            )

    if details.order_type == OrderType.PREORDER:
        earliest = datetime.now(timezone.utc) + timedelta(
            minutes=restaurant.pre_order_lead_time_minutes
        )
        if as_utc(details.scheduled_for) < earliest:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"Pre-orders need at least {restaurant.pre_order_lead_time_minutes} "
                    f"minutes notice"
                )
            )


# =============================================================================
# PLACEMENT
# =============================================================================

async def create_order(
    db: AsyncSession,
    customer: User,
    restaurant_id: int,
    lines: list[LineRequest],
    details: OrderDetails,
) -> Order:
    """
    Validate and stage a new order with all of its line items.

    Prices are snapshotted from the menu rows, never taken from the client.
    The order is flushed but not committed.

    Raises:
        HTTPException: 400/404 for any validation failure
    """
    if not lines:
        raise HTTPException(status_code=400, detail="Order has no items")

    restaurant = await get_open_restaurant(db, restaurant_id)
    menu = await _load_menu_items(db, restaurant.id, {line.menu_item_id for line in lines})
    await _check_fulfilment(db, restaurant, details)

    order_items = []
    for line in lines:
        menu_item = menu[line.menu_item_id]
        line_subtotal = round(menu_item.price * line.quantity, 2)
        order_items.append(OrderItem(
            menu_item_id=menu_item.id,
            item_snapshot={
                "name": menu_item.name,
                "price": menu_item.price,
                "category": menu_item.category,
            },
            quantity=line.quantity,
            unit_price=menu_item.price,
            subtotal=line_subtotal,
            notes=line.notes,
        ))

    totals = calculate_order_totals(
        (item.subtotal for item in order_items),
        details.order_type,
        restaurant.delivery_fee_amount,
    )

    if totals["subtotal"] < restaurant.min_order_amount:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Minimum order at {restaurant.name} is "
                f"{restaurant.min_order_amount:.2f} {settings.currency}"
            )
        )

    order = Order(
        order_code=await generate_order_code(db),
        restaurant_id=restaurant.id,
        customer_id=customer.id,
        table_id=details.table_id if details.order_type == OrderType.TABLE else None,
        order_type=details.order_type,
        status=OrderStatus.RECEIVED,
        scheduled_for=details.scheduled_for,
        customer_name=details.customer_name or customer.full_name,
        customer_phone=details.customer_phone or customer.phone,
        delivery_address=details.delivery_address if details.order_type == OrderType.DELIVERY else None,
        notes=details.notes,
        items=order_items,
        **totals,
    )
    db.add(order)
    await db.flush()

    logger.info(
        f"Order {order.order_code} staged: {details.order_type.value} at "
        f"restaurant #{restaurant.id}, {len(order_items)} lines, total {totals['total_amount']}"
    )
    return order


async def place_order(
    db: AsyncSession,
    customer: User,
    restaurant_id: int,
    lines: list[LineRequest],
    details: OrderDetails,
    cart: Optional[Cart] = None,
) -> Order:
    """
    Create and commit an order, emptying ``cart`` in the same transaction.

    On any failure the whole unit rolls back: no order, no line items,
    and the cart keeps its contents.
    """
    customer_id = customer.id
    try:
        order = await create_order(db, customer, restaurant_id, lines, details)
        if cart is not None:
            cart.items.clear()
            cart.restaurant_id = None
        await db.commit()

    except HTTPException:
        await db.rollback()
        raise
    except Exception as e:
        await db.rollback()
        logger.exception(f"Error placing order for customer #{customer_id}")
        raise HTTPException(status_code=500, detail=f"Order placement failed: {e}")

    order = await load_order(db, order.id)
    logger.info(f"Order {order.order_code} placed by customer #{customer_id}")

    queue_order_export(order)
    return order


# =============================================================================
# EXPORT
# =============================================================================

def order_export_payload(order: Order) -> dict[str, Any]:
    return {
        "order_id": order.id,
        "order_code": order.order_code,
        "restaurant_id": order.restaurant_id,
        "order_type": order.order_type.value,
        "customer_name": order.customer_name,
        "customer_phone": order.customer_phone,
        "delivery_address": order.delivery_address,
        "table_id": order.table_id,
        "scheduled_for": order.scheduled_for.isoformat() if order.scheduled_for else None,
        "items": ", ".join(
            f"{item.quantity}x {item.item_snapshot.get('name')}" for item in order.items
        ),
        "notes": order.notes,
        "subtotal": order.subtotal,
        "service_fee": order.service_fee,
        "delivery_fee": order.delivery_fee,
        "total_amount": order.total_amount,
        "order_status": order.status.value,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }


def queue_order_export(order: Order) -> None:
    """Hand the order to the Celery export worker; a broker outage never fails the order."""
    if not settings.export_orders:
        return

    from servesoft.tasks import export_order_to_excel

    try:
        export_order_to_excel.delay(order_export_payload(order))
    except Exception:
        logger.exception(f"Could not queue Excel export for order {order.order_code}")
