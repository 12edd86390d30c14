"""
Staff Endpoints (manager)

Employment records of the manager's restaurant. Hiring creates the staff
login and its employment record together.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_manager_restaurant_id, hash_password
from servesoft.database import get_db
from servesoft.models import (
    EmploymentRecord,
    EmploymentStatus,
    StaffRole,
    User,
    UserRole,
)
from servesoft.schemas import ErrorResponse, StaffCreate, StaffResponse, StaffStatusUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/staff", tags=["Staff"])


@router.get("", response_model=list[StaffResponse])
async def list_staff(
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> list[StaffResponse]:
    result = await db.execute(
        select(EmploymentRecord)
        .where(EmploymentRecord.restaurant_id == restaurant_id)
        .order_by(EmploymentRecord.hired_date.desc(), EmploymentRecord.id.desc())
    )
    return [StaffResponse.from_record(r) for r in result.scalars().all()]


@router.post(
    "",
    response_model=StaffResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def create_staff(
    data: StaffCreate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    """
    Hire a staff member: a STAFF user plus an ACTIVE employment record.

    Both rows commit together; a failure leaves neither behind.
    """
    if data.staff_role == StaffRole.MANAGER:
        raise HTTPException(status_code=400, detail="Managers are appointed by an admin")

    existing = await db.execute(select(User.id).where(User.email == data.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    try:
        user = User(
            email=data.email,
            full_name=data.full_name.strip(),
            phone=data.phone,
            role=UserRole.STAFF,
            password_hash=hash_password(data.password),
        )
        db.add(user)
        await db.flush()

        record = EmploymentRecord(
            user_id=user.id,
            user=user,
            restaurant_id=restaurant_id,
            staff_role=data.staff_role,
            status=EmploymentStatus.ACTIVE,
        )
        db.add(record)
        await db.commit()

    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Staff creation failed for {data.email}")
        raise HTTPException(status_code=500, detail=f"Staff creation failed: {e}")

    logger.info(
        f"Staff #{user.id} hired at restaurant #{restaurant_id} as {data.staff_role.value}"
    )
    return StaffResponse.from_record(record)


@router.put("/{record_id}/status", response_model=StaffResponse)
async def update_staff_status(
    record_id: int,
    data: StaffStatusUpdate,
    restaurant_id: int = Depends(get_manager_restaurant_id),
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    record = await db.get(EmploymentRecord, record_id)
    if record is None or record.restaurant_id != restaurant_id:
        raise HTTPException(status_code=404, detail=f"Staff record #{record_id} not found")
    if record.staff_role == StaffRole.MANAGER:
        raise HTTPException(status_code=400, detail="Manager records are changed by an admin")

    record.status = data.status
    await db.commit()

    logger.info(f"Staff record #{record.id} is now {data.status.value}")
    return StaffResponse.from_record(record)
