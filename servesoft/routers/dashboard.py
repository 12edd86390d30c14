"""
Dashboard Endpoint (manager)

Aggregated statistics for the manager's restaurant.
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_manager_restaurant_id
from servesoft.database import get_db
from servesoft.models import (
    Order,
    OrderStatus,
    Reservation,
    ReservationStatus,
    Table,
)
from servesoft.schemas import DashboardResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])

# Orders that never earned money
UNPAID_STATUSES = (OrderStatus.CANCELLED, OrderStatus.FAILED)


@router.get("", response_model=DashboardResponse)
async def dashboard_data(
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> DashboardResponse:
    """Get aggregated dashboard statistics."""

    # Orders by status
    status_result = await db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.restaurant_id == restaurant_id)
        .group_by(Order.status)
    )
    orders_by_status = {status.value: count for status, count in status_result.all()}
    total_orders = sum(orders_by_status.values())

    # Today's revenue
    today_start = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
    revenue_result = await db.execute(
        select(func.sum(Order.total_amount)).where(
            Order.restaurant_id == restaurant_id,
            Order.created_at >= today_start,
            Order.status.not_in(UNPAID_STATUSES),
        )
    )
    today_revenue = revenue_result.scalar() or 0.0

    # Average order value
    avg_result = await db.execute(
        select(func.avg(Order.total_amount)).where(
            Order.restaurant_id == restaurant_id,
            Order.status.not_in(UNPAID_STATUSES),
        )
    )
    avg_order_value = avg_result.scalar() or 0.0

    # Table occupancy
    table_result = await db.execute(
        select(Table.state, func.count(Table.id))
        .where(Table.restaurant_id == restaurant_id)
        .group_by(Table.state)
    )
    tables_by_state = {state.value: count for state, count in table_result.all()}

    pending_result = await db.execute(
        select(func.count(Reservation.id)).where(
            Reservation.restaurant_id == restaurant_id,
            Reservation.status == ReservationStatus.PENDING,
        )
    )
    pending_reservations = pending_result.scalar() or 0

    # Recent orders
    recent_result = await db.execute(
        select(Order)
        .where(Order.restaurant_id == restaurant_id)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(10)
    )
    recent_orders = recent_result.scalars().all()

    return DashboardResponse(
        restaurant_id=restaurant_id,
        total_orders=total_orders,
        orders_by_status=orders_by_status,
        today_revenue=round(today_revenue, 2),
        avg_order_value=round(avg_order_value, 2),
        tables_by_state=tables_by_state,
        pending_reservations=pending_reservations,
        recent_orders=[
            {
                "id": o.id,
                "order_code": o.order_code,
                "order_type": o.order_type.value,
                "customer_name": o.customer_name,
                "items": ", ".join(
                    f"{item.quantity}x {item.item_snapshot.get('name')}" for item in o.items
                ),
                "total_amount": o.total_amount,
                "status": o.status.value,
                "created_at": o.created_at.isoformat() if o.created_at else None,
            }
            for o in recent_orders
        ],
    )
