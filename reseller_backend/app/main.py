"""
FastAPI Application Entry Point.

This is the main application file for the Reseller Settlement Backend.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from reseller_backend.app.core.config import settings
from reseller_backend.app.api.v1.router import router as api_v1_router
from reseller_backend.app.core.observability import ObservabilityMiddleware, configure_logging
from reseller_backend.app.core.redis_client import close_redis, ping_redis
from reseller_backend.app.db.session import engine, Base
from reseller_backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from reseller_backend.app.models.account import Account
from reseller_backend.app.models.subscription import Subscription
from reseller_backend.app.models.settlement import Settlement
from reseller_backend.app.models.audit_log import AuditLog
from reseller_backend.app.models.notification import Notification

configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup, releases the database and Redis
    pools on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()
    await close_redis()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Settlement engine for the reseller dashboard: weekly commission ledger per distributor",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
        "environment": settings.environment,
        "redis": "ok" if await ping_redis() else "unavailable",
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to Reseller Settlement Backend API",
        "docs": "/docs",
        "health": "/health",
    }
