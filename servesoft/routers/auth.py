"""
Authentication Endpoints

    - POST /api/auth/register: Create a customer account
    - POST /api/auth/login: Check credentials, return the profile
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servesoft.auth import hash_password, verify_password
from servesoft.database import get_db
from servesoft.models import Cart, User, UserRole
from servesoft.schemas import AuthResponse, ErrorResponse, LoginRequest, RegisterRequest, UserProfile

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=201,
    responses={409: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Register Customer",
)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """
    Create a CUSTOMER account and its cart.

    Both rows are written in one transaction; any failure rolls back both.
    """
    existing = await db.execute(select(User.id).where(User.email == data.email))
    if existing.scalar_one_or_none() is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    try:
        user = User(
            email=data.email,
            full_name=data.name.strip(),
            phone=data.phone,
            role=UserRole.CUSTOMER,
            password_hash=hash_password(data.password),
        )
        db.add(user)
        await db.flush()

        db.add(Cart(customer_id=user.id))
        await db.commit()

    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Email already registered")
    except Exception as e:
        await db.rollback()
        logger.exception(f"Registration failed for {data.email}")
        raise HTTPException(status_code=500, detail=f"Registration failed: {e}")

    logger.info(f"Customer #{user.id} registered: {user.email}")
    return AuthResponse(user=UserProfile.from_user(user))


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Log In",
)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    """Verify email and password. The returned id goes in the X-User-ID header."""
    result = await db.execute(select(User).where(User.email == data.email))
    user = result.scalar_one_or_none()

    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    if not verify_password(data.password, user.password_hash):
        logger.warning(f"Failed login for user #{user.id}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    return AuthResponse(user=UserProfile.from_user(user))
