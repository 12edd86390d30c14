"""
Order Endpoints

    - POST /api/orders: Place an order from an explicit item list
    - GET /api/orders/mine: Caller's order history
    - GET /api/orders: Restaurant orders (manager)
    - GET /api/orders/{id}: Order details
    - PUT /api/orders/{id}/status: Move an order through its lifecycle
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import (
    get_active_employment,
    get_current_user,
    get_manager_restaurant_id,
    require_roles,
)
from servesoft.core.config import get_settings
from servesoft.database import get_db
from servesoft.lifecycle import transition_order
from servesoft.models import (
    DeliveryAssignment,
    Order,
    OrderStatus,
    User,
    UserRole,
)
from servesoft.schemas import (
    ErrorResponse,
    OrderCreate,
    OrderCreateResponse,
    OrderListResponse,
    OrderResponse,
    OrderStatusUpdate,
)
from servesoft.services.ordering import LineRequest, get_order_or_404, load_order, place_order

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orders", tags=["Orders"])


async def ensure_can_view(db: AsyncSession, user: User, order: Order) -> None:
    """Customers see their own orders, staff those of their restaurant or assigned to them."""
    if user.role == UserRole.ADMIN:
        return
    if user.role == UserRole.CUSTOMER and order.customer_id == user.id:
        return
    if user.role in (UserRole.MANAGER, UserRole.STAFF):
        record = await get_active_employment(db, user.id)
        if record is not None and record.restaurant_id == order.restaurant_id:
            return
        assigned = await db.execute(
            select(DeliveryAssignment.id).where(
                DeliveryAssignment.order_id == order.id,
                DeliveryAssignment.driver_id == user.id,
            )
        )
        if assigned.first() is not None:
            return
    raise HTTPException(status_code=404, detail=f"Order #{order.id} not found")


@router.post(
    "",
    response_model=OrderCreateResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Place Order",
)
async def create_order(
    data: OrderCreate,
    customer: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
) -> OrderCreateResponse:
    """
    Place a TABLE, PREORDER or DELIVERY order.

    Prices come from the menu. The order and every line item are written
    in one transaction.
    """
    logger.info(f"Creating {data.order_type.value} order for customer #{customer.id}")

    lines = [
        LineRequest(menu_item_id=line.menu_item_id, quantity=line.quantity, notes=line.notes)
        for line in data.items
    ]
    order = await place_order(db, customer, data.restaurant_id, lines, data)

    return OrderCreateResponse(
        success=True,
        message="Order placed successfully!",
        order_id=order.id,
        order_code=order.order_code,
        order_type=order.order_type,
        total_amount=order.total_amount,
        currency=settings.currency,
    )


@router.get("/mine", response_model=OrderListResponse, summary="Order History")
async def my_orders(
    customer: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    result = await db.execute(
        select(Order)
        .where(Order.customer_id == customer.id)
        .order_by(Order.created_at.desc(), Order.id.desc())
    )
    orders = result.scalars().all()
    return OrderListResponse(
        total=len(orders),
        orders=[OrderResponse.model_validate(o) for o in orders],
    )


@router.get("", response_model=OrderListResponse, summary="Restaurant Orders")
async def list_restaurant_orders(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    status: Optional[str] = Query(None),
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> OrderListResponse:
    """Paginated orders of the manager's restaurant, newest first."""
    query = select(Order).where(Order.restaurant_id == restaurant_id)
    count_query = select(func.count(Order.id)).where(Order.restaurant_id == restaurant_id)

    if status:
        try:
            status_enum = OrderStatus(status.upper())
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Invalid status. Options: {[s.value for s in OrderStatus]}"
            )
        query = query.where(Order.status == status_enum)
        count_query = count_query.where(Order.status == status_enum)

    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    query = query.order_by(Order.created_at.desc(), Order.id.desc()).offset(skip).limit(limit)
    result = await db.execute(query)

    return OrderListResponse(
        total=total,
        orders=[OrderResponse.model_validate(o) for o in result.scalars().all()],
    )


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    order = await get_order_or_404(db, order_id)
    await ensure_can_view(db, user, order)
    return OrderResponse.model_validate(order)


@router.put(
    "/{order_id}/status",
    response_model=OrderResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Update Order Status",
)
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    user: User = Depends(require_roles(UserRole.MANAGER, UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
) -> OrderResponse:
    """
    Move an order along its lifecycle.

    Managers drive the kitchen flow of their restaurant's orders. Customers
    may only cancel their own order while it has not entered preparation.
    Illegal or concurrent transitions return 409.
    """
    order = await get_order_or_404(db, order_id)

    if user.role == UserRole.CUSTOMER:
        if order.customer_id != user.id:
            raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")
        if data.status != OrderStatus.CANCELLED or order.status != OrderStatus.RECEIVED:
            raise HTTPException(
                status_code=403,
                detail="Customers can only cancel orders that are still RECEIVED"
            )
    else:
        record = await get_active_employment(db, user.id)
        if record is None or record.restaurant_id != order.restaurant_id:
            raise HTTPException(status_code=404, detail=f"Order #{order_id} not found")

    await transition_order(db, order, data.status, cancellation_reason=data.reason)
    await db.commit()

    return OrderResponse.model_validate(await load_order(db, order_id))
