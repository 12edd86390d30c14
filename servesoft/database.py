"""
Database Connection Module
Handles the async SQLAlchemy engine, session factory and schema bootstrap.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from servesoft.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# SQLite (tests, local runs) does not take pool sizing arguments
engine_options = {"echo": settings.database_echo}
if not settings.is_sqlite:
    engine_options.update(pool_size=5, max_overflow=10, pool_pre_ping=True)

engine = create_async_engine(settings.database_url, **engine_options)

# Session factory - creates new database sessions
async_session_maker = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False  # Objects remain accessible after commit
)


# Base class for all our models
class Base(DeclarativeBase):
    # Fetch server-generated timestamps on flush; async sessions cannot lazy-load them
    __mapper_args__ = {"eager_defaults": True}


async def get_db() -> AsyncSession:
    """
    Dependency injection for FastAPI routes.
    Yields a database session, rolls back on error and ensures cleanup.
    """
    async with async_session_maker() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def seed_admin(session: AsyncSession) -> None:
    """Create the configured bootstrap admin if it does not exist yet."""
    from servesoft.auth import hash_password
    from servesoft.models import User, UserRole

    if not (settings.bootstrap_admin_email and settings.bootstrap_admin_password):
        return

    email = settings.bootstrap_admin_email.strip().lower()
    result = await session.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none() is not None:
        return

    session.add(User(
        email=email,
        full_name=settings.bootstrap_admin_name,
        role=UserRole.ADMIN,
        password_hash=hash_password(settings.bootstrap_admin_password),
    ))
    await session.commit()
    logger.info(f"Bootstrap admin created: {email}")


async def init_db() -> None:
    """
    Create all tables in database and seed the bootstrap admin.
    Called once at application startup.
    """
    from servesoft import models  # noqa: F401  (registers tables on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")

    async with async_session_maker() as session:
        await seed_admin(session)
