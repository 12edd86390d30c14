"""
Reservation Endpoints

Customers book and review their reservations; managers confirm, seat
and close them for their restaurant.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_manager_restaurant_id, require_roles
from servesoft.database import get_db
from servesoft.lifecycle import transition_reservation, transition_table
from servesoft.models import (
    Reservation,
    ReservationStatus,
    Restaurant,
    Table,
    TableState,
    User,
    UserRole,
)
from servesoft.schemas import (
    ErrorResponse,
    ReservationCreate,
    ReservationResponse,
    ReservationStatusUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reservations", tags=["Reservations"])


@router.post(
    "",
    response_model=ReservationResponse,
    status_code=201,
    responses={400: {"model": ErrorResponse}},
)
async def create_reservation(
    data: ReservationCreate,
    customer: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
) -> ReservationResponse:
    restaurant = await db.get(Restaurant, data.restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail=f"Restaurant #{data.restaurant_id} not found")
    if not restaurant.is_active:
        raise HTTPException(status_code=400, detail=f"{restaurant.name} is not taking reservations")
    if data.reservation_date < date.today():
        raise HTTPException(status_code=400, detail="Reservation date is in the past")

    reservation = Reservation(
        restaurant_id=restaurant.id,
        customer_id=customer.id,
        customer_name=data.customer_name or customer.full_name,
        customer_phone=data.customer_phone or customer.phone,
        reservation_date=data.reservation_date,
        reservation_time=data.reservation_time,
        party_size=data.party_size,
        status=ReservationStatus.PENDING,
        notes=data.notes,
    )
    db.add(reservation)
    await db.commit()
    await db.refresh(reservation)

    logger.info(
        f"Reservation #{reservation.id}: {data.party_size} guests at restaurant "
        f"#{restaurant.id} on {data.reservation_date} {data.reservation_time}"
    )
    return ReservationResponse.model_validate(reservation)


@router.get("/mine", response_model=list[ReservationResponse])
async def my_reservations(
    customer: User = Depends(require_roles(UserRole.CUSTOMER)),
    db: AsyncSession = Depends(get_db),
) -> list[ReservationResponse]:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.customer_id == customer.id)
        .order_by(Reservation.reservation_date.desc(), Reservation.reservation_time.desc())
    )
    return [ReservationResponse.model_validate(r) for r in result.scalars().all()]


@router.get("", response_model=list[ReservationResponse])
async def list_restaurant_reservations(
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> list[ReservationResponse]:
    result = await db.execute(
        select(Reservation)
        .where(Reservation.restaurant_id == restaurant_id)
        .order_by(Reservation.reservation_date, Reservation.reservation_time)
    )
    return [ReservationResponse.model_validate(r) for r in result.scalars().all()]


@router.put(
    "/{reservation_id}/status",
    response_model=ReservationResponse,
    responses={409: {"model": ErrorResponse}},
)
async def update_reservation_status(
    reservation_id: int,
    data: ReservationStatusUpdate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> ReservationResponse:
    """
    Move a reservation along PENDING, CONFIRMED, SEATED, COMPLETED.

    Seating with a ``table_id`` also moves that table to SEATED; both
    changes commit together or not at all.
    """
    reservation = await db.get(Reservation, reservation_id)
    if reservation is None or reservation.restaurant_id != restaurant_id:
        raise HTTPException(status_code=404, detail=f"Reservation #{reservation_id} not found")

    table = None
    if data.status == ReservationStatus.SEATED and data.table_id is not None:
        table = await db.get(Table, data.table_id)
        if table is None or table.restaurant_id != restaurant_id:
            raise HTTPException(
                status_code=400,
                detail=f"Table #{data.table_id} does not belong to this restaurant"
            )

    try:
        await transition_reservation(
            db, reservation, data.status,
            table_id=table.id if table is not None else None,
        )
        if table is not None:
            await transition_table(db, table, TableState.SEATED)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(reservation)
    return ReservationResponse.model_validate(reservation)
