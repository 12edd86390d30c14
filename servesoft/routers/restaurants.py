"""
Restaurant Endpoints

Public browsing of active restaurants, admin management, and appointing
a restaurant's manager.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_active_employment, require_roles
from servesoft.core.config import get_settings
from servesoft.database import get_db
from servesoft.models import (
    EmploymentRecord,
    EmploymentStatus,
    Restaurant,
    StaffRole,
    User,
    UserRole,
)
from servesoft.schemas import (
    RestaurantCreate,
    RestaurantResponse,
    RestaurantSummary,
    RestaurantUpdate,
    StaffResponse,
)

settings = get_settings()
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/restaurants", tags=["Restaurants"])


async def get_restaurant_or_404(db: AsyncSession, restaurant_id: int) -> Restaurant:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise HTTPException(status_code=404, detail=f"Restaurant #{restaurant_id} not found")
    return restaurant


# =============================================================================
# PUBLIC
# =============================================================================

@router.get("", response_model=list[RestaurantSummary], summary="List Active Restaurants")
async def list_active_restaurants(
    db: AsyncSession = Depends(get_db),
) -> list[RestaurantSummary]:
    result = await db.execute(
        select(Restaurant).where(Restaurant.is_active.is_(True)).order_by(Restaurant.name)
    )
    return [RestaurantSummary.model_validate(r) for r in result.scalars().all()]


@router.get("/all", response_model=list[RestaurantResponse], summary="List All Restaurants")
async def list_all_restaurants(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> list[RestaurantResponse]:
    result = await db.execute(
        select(Restaurant).order_by(Restaurant.created_at.desc(), Restaurant.id.desc())
    )
    return [RestaurantResponse.model_validate(r) for r in result.scalars().all()]


@router.get("/{restaurant_id}", response_model=RestaurantResponse)
async def get_restaurant(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    return RestaurantResponse.model_validate(await get_restaurant_or_404(db, restaurant_id))


# =============================================================================
# ADMIN
# =============================================================================

@router.post("", response_model=RestaurantResponse, status_code=201)
async def create_restaurant(
    data: RestaurantCreate,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    values = data.model_dump()
    if values["delivery_fee_amount"] is None:
        values["delivery_fee_amount"] = settings.default_delivery_fee
    if values["pre_order_lead_time_minutes"] is None:
        values["pre_order_lead_time_minutes"] = settings.default_pre_order_lead_time_minutes

    restaurant = Restaurant(**values, is_active=True)
    db.add(restaurant)
    await db.commit()
    await db.refresh(restaurant)

    logger.info(f"Admin #{admin.id} created restaurant #{restaurant.id} ({restaurant.name})")
    return RestaurantResponse.model_validate(restaurant)


@router.put("/{restaurant_id}", response_model=RestaurantResponse)
async def update_restaurant(
    restaurant_id: int,
    data: RestaurantUpdate,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await get_restaurant_or_404(db, restaurant_id)
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(restaurant, key, value)

    await db.commit()
    await db.refresh(restaurant)
    return RestaurantResponse.model_validate(restaurant)


@router.put("/{restaurant_id}/toggle-active", response_model=RestaurantResponse)
async def toggle_restaurant_active(
    restaurant_id: int,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> RestaurantResponse:
    restaurant = await get_restaurant_or_404(db, restaurant_id)
    restaurant.is_active = not restaurant.is_active

    await db.commit()
    await db.refresh(restaurant)

    logger.info(f"Restaurant #{restaurant.id} is_active={restaurant.is_active}")
    return RestaurantResponse.model_validate(restaurant)


@router.post("/{restaurant_id}/managers/{user_id}", response_model=StaffResponse, status_code=201)
async def appoint_manager(
    restaurant_id: int,
    user_id: int,
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> StaffResponse:
    """
    Make a user the manager of a restaurant.

    The user's role becomes MANAGER and an ACTIVE employment record links
    them to the restaurant. A user manages one restaurant at a time.
    """
    await get_restaurant_or_404(db, restaurant_id)
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if user.role == UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admins cannot be appointed managers")

    current = await get_active_employment(db, user.id)
    if current is not None:
        raise HTTPException(
            status_code=409,
            detail=f"User #{user.id} is already employed at restaurant #{current.restaurant_id}"
        )

    record = EmploymentRecord(
        user=user,
        restaurant_id=restaurant_id,
        staff_role=StaffRole.MANAGER,
        status=EmploymentStatus.ACTIVE,
    )
    user.role = UserRole.MANAGER
    db.add(record)
    await db.commit()

    logger.info(f"User #{user.id} appointed manager of restaurant #{restaurant_id}")
    return StaffResponse.from_record(record)
