"""
User Endpoints

    - GET /api/users/me: Caller's profile
    - PUT /api/users/me/availability: Driver availability toggle
    - GET /api/users/{id}: Profile by id
    - GET /api/users: All users (admin)
    - PUT /api/users/{id}/role: Change a user's role (admin)
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import get_current_user, require_roles
from servesoft.database import get_db
from servesoft.models import User, UserRole
from servesoft.schemas import (
    AuthResponse,
    AvailabilityUpdate,
    RoleUpdate,
    UserProfile,
    UserResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["Users"])


@router.get("/me", response_model=AuthResponse)
async def my_profile(user: User = Depends(get_current_user)) -> AuthResponse:
    return AuthResponse(user=UserProfile.from_user(user))


@router.put("/me/availability", response_model=AuthResponse)
async def set_availability(
    data: AvailabilityUpdate,
    user: User = Depends(require_roles(UserRole.STAFF)),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Drivers go on/off shift; only available drivers can be assigned."""
    user.is_available = data.is_available
    await db.commit()
    logger.info(f"Driver #{user.id} available={data.is_available}")
    return AuthResponse(user=UserProfile.from_user(user))


@router.get("/{user_id}", response_model=AuthResponse)
async def get_profile(
    user_id: int,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return AuthResponse(user=UserProfile.from_user(user))


@router.get("", response_model=list[UserResponse])
async def list_users(
    _: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> list[UserResponse]:
    result = await db.execute(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return [UserResponse.model_validate(u) for u in result.scalars().all()]


@router.put("/{user_id}/role", response_model=UserResponse)
async def update_role(
    user_id: int,
    data: RoleUpdate,
    admin: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
) -> UserResponse:
    user = await db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    if user.id == admin.id and data.role != UserRole.ADMIN:
        raise HTTPException(status_code=400, detail="Admins cannot demote themselves")

    user.role = data.role
    await db.commit()
    await db.refresh(user)

    logger.info(f"Admin #{admin.id} set user #{user.id} role to {data.role.value}")
    return UserResponse.model_validate(user)
