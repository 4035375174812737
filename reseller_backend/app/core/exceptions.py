"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes, the settlement error taxonomy,
and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


# Settlement Errors

class SettlementError(AppException):
    """Base class for every error raised by the settlement engine."""


class InvalidPeriodError(SettlementError):
    """Raised when a settlement period is malformed or inverted."""

    def __init__(self, message: str = "Invalid settlement period", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_SETTLEMENT_INVALID_PERIOD",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class AlreadyConfirmedError(SettlementError):
    """Raised when settlements for the period already exist. The whole batch is rolled back."""

    def __init__(self, period_start: Any, period_end: Any):
        super().__init__(
            message=f"Settlements for {period_start} ~ {period_end} are already confirmed",
            error_code="ERR_SETTLEMENT_ALREADY_CONFIRMED",
            status_code=status.HTTP_409_CONFLICT,
            details={"period_start": str(period_start), "period_end": str(period_end)}
        )


class AlreadyPaidError(SettlementError):
    """Raised when mark-paid targets a settlement that is already PAID."""

    def __init__(self, settlement_id: int):
        super().__init__(
            message=f"Settlement {settlement_id} is already paid",
            error_code="ERR_SETTLEMENT_ALREADY_PAID",
            status_code=status.HTTP_409_CONFLICT,
            details={"settlement_id": settlement_id}
        )


class SettlementNotFoundError(SettlementError, ResourceNotFoundError):
    """Raised when a settlement id does not exist."""

    def __init__(self, settlement_id: int):
        ResourceNotFoundError.__init__(self, "Settlement", settlement_id)


class AccountNotFoundError(SettlementError, ResourceNotFoundError):
    """Raised when an id does not resolve to an account of the expected role."""

    def __init__(self, account_id: int, role: str = "Account"):
        ResourceNotFoundError.__init__(self, role, account_id)


class StorageFailureError(SettlementError):
    """Raised when a ledger transaction fails to commit. Safe to retry."""

    def __init__(self, message: str = "Settlement storage failure", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_SETTLEMENT_STORAGE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": exc.errors()
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
