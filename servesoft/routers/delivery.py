"""
Delivery Endpoints

Managers hand delivery orders to available drivers; drivers work through
their assignments, and each step is mirrored onto the order.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_active_employment, get_manager_restaurant_id, require_roles
from servesoft.database import get_db
from servesoft.lifecycle import (
    ASSIGNMENT_ORDER_STATUS,
    LIVE_ASSIGNMENT_STATUSES,
    TERMINAL_ORDER_STATUSES,
    can_transition_order,
    transition_assignment,
    transition_order,
)
from servesoft.models import (
    AssignmentStatus,
    DeliveryAssignment,
    OrderType,
    StaffRole,
    User,
    UserRole,
)
from servesoft.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentStatusUpdate,
    ErrorResponse,
)
from servesoft.services.ordering import get_order_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/delivery", tags=["Delivery"])

driver_only = require_roles(UserRole.STAFF)


async def load_assignment(db: AsyncSession, assignment_id: int):
    result = await db.execute(
        select(DeliveryAssignment)
        .where(DeliveryAssignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


@router.post(
    "/assign",
    response_model=AssignmentResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
    summary="Assign Driver",
)
async def assign_driver(
    data: AssignmentCreate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    """
    Assign a driver to a delivery order of the manager's restaurant.

    The driver must be an available STAFF user working as DRIVER at the
    same restaurant. An order holds at most one live assignment.
    """
    order = await get_order_or_404(db, data.order_id)
    if order.restaurant_id != restaurant_id:
        raise HTTPException(status_code=404, detail=f"Order #{data.order_id} not found")
    if order.order_type != OrderType.DELIVERY:
        raise HTTPException(status_code=400, detail=f"Order {order.order_code} is not a delivery")
    if order.status in TERMINAL_ORDER_STATUSES:
        raise HTTPException(
            status_code=400,
            detail=f"Order {order.order_code} is already {order.status.value}"
        )

    driver = await db.get(User, data.driver_id)
    if driver is None or driver.role != UserRole.STAFF:
        raise HTTPException(status_code=404, detail=f"Driver #{data.driver_id} not found")

    record = await get_active_employment(db, driver.id)
    if (
        record is None
        or record.restaurant_id != restaurant_id
        or record.staff_role != StaffRole.DRIVER
    ):
        raise HTTPException(
            status_code=400,
            detail=f"{driver.full_name} is not an active driver at this restaurant"
        )
    if not driver.is_available:
        raise HTTPException(status_code=400, detail=f"{driver.full_name} is not available")

    live = await db.execute(
        select(DeliveryAssignment.id).where(
            DeliveryAssignment.order_id == order.id,
            DeliveryAssignment.status.in_(LIVE_ASSIGNMENT_STATUSES),
        )
    )
    if live.first() is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Order {order.order_code} already has a driver assigned"
        )

    assignment = DeliveryAssignment(
        order_id=order.id,
        order=order,
        driver_id=driver.id,
        status=AssignmentStatus.PENDING,
    )
    db.add(assignment)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Order #{data.order_id}: lost driver assignment race")
        raise HTTPException(
            status_code=409,
            detail=f"Order #{data.order_id} already has a driver assigned"
        )

    logger.info(f"Order {order.order_code} assigned to driver #{driver.id}")
    return AssignmentResponse.from_assignment(await load_assignment(db, assignment.id))


@router.get("/assignments", response_model=list[AssignmentResponse], summary="My Deliveries")
async def my_assignments(
    driver: User = Depends(driver_only),
    db: AsyncSession = Depends(get_db),
) -> list[AssignmentResponse]:
    result = await db.execute(
        select(DeliveryAssignment)
        .where(DeliveryAssignment.driver_id == driver.id)
        .order_by(DeliveryAssignment.created_at.desc(), DeliveryAssignment.id.desc())
    )
    return [AssignmentResponse.from_assignment(a) for a in result.scalars().all()]


@router.put(
    "/assignments/{assignment_id}/status",
    response_model=AssignmentResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Update Delivery Status",
)
async def update_assignment_status(
    assignment_id: int,
    data: AssignmentStatusUpdate,
    driver: User = Depends(driver_only),
    db: AsyncSession = Depends(get_db),
) -> AssignmentResponse:
    """
    Advance an assignment. Pickup, departure, delivery and failure are
    copied onto the order when its own lifecycle allows the move; both
    writes commit together.
    """
    assignment = await load_assignment(db, assignment_id)
    if assignment is None or assignment.driver_id != driver.id:
        raise HTTPException(status_code=404, detail=f"Assignment #{assignment_id} not found")

    order = await get_order_or_404(db, assignment.order_id)
    if order.status in TERMINAL_ORDER_STATUSES:
        raise HTTPException(
            status_code=409,
            detail=f"Order {order.order_code} is already {order.status.value}"
        )

    try:
        await transition_assignment(db, assignment, data.status)

        order_target = ASSIGNMENT_ORDER_STATUS.get(data.status)
        if order_target is not None:
            if can_transition_order(order.order_type, order.status, order_target):
                await transition_order(db, order, order_target)
            else:
                logger.warning(
                    f"Order {order.order_code} left at {order.status.value}; "
                    f"cannot follow assignment #{assignment.id} to {order_target.value}"
                )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return AssignmentResponse.from_assignment(await load_assignment(db, assignment_id))
