"""
Authentication & Authorization Helpers

- Password hashing (werkzeug.security)
- Caller identity from the X-User-ID request header
- Role guards and manager restaurant resolution

No session or token is issued: clients send the id returned by login.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from werkzeug.security import check_password_hash, generate_password_hash

from servesoft.database import get_db
from servesoft.models import EmploymentRecord, EmploymentStatus, User, UserRole

logger = logging.getLogger(__name__)


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, stored: str) -> bool:
    """
    Check a password against the stored value.

    Rows imported from the legacy system hold plaintext passwords; those
    still compare equal until the user is re-registered.
    """
    try:
        if check_password_hash(stored, password):
            return True
    except ValueError:
        # Not a werkzeug hash at all
        pass
    return password == stored


# =============================================================================
# CALLER IDENTITY
# =============================================================================

async def get_current_user(
    x_user_id: Optional[int] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the calling user from the X-User-ID header."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="X-User-ID header required")

    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


def require_roles(*roles: UserRole):
    """Dependency factory restricting a route to the given roles."""
    allowed = frozenset(roles)

    async def guard(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.warning(
                f"User #{user.id} ({user.role.value}) denied; requires "
                f"{sorted(r.value for r in allowed)}"
            )
            raise HTTPException(status_code=403, detail="Not allowed for this role")
        return user

    return guard


async def get_active_employment(db: AsyncSession, user_id: int) -> Optional[EmploymentRecord]:
    result = await db.execute(
        select(EmploymentRecord)
        .where(
            EmploymentRecord.user_id == user_id,
            EmploymentRecord.status == EmploymentStatus.ACTIVE,
        )
        .order_by(EmploymentRecord.id.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_manager_restaurant_id(
    user: User = Depends(require_roles(UserRole.MANAGER)),
    db: AsyncSession = Depends(get_db),
) -> int:
    """Restaurant of the calling manager, from their ACTIVE employment record."""
    record = await get_active_employment(db, user.id)
    if record is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return record.restaurant_id
