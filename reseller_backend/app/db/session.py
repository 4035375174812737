"""
Database session configuration.

One async engine for the settlement ledger. PostgreSQL in deployment,
SQLite (aiosqlite) for local runs and tests.
"""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from reseller_backend.app.core.config import settings


def _engine_options() -> dict:
    # Pool sizing only applies to server databases (SQLite uses a singleton pool)
    if settings.database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        # Weekly cron traffic leaves connections idle for days
        "pool_pre_ping": True,
    }


engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    **_engine_options(),
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def get_db():
    """
    FastAPI dependency for database sessions.

    A request that fails leaves nothing half-written: the session is
    rolled back before the error propagates to the exception handlers.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
