# backend/core/error_handling.py

"""
Error types and the route decorator that turns them into HTTP responses.
"""

from typing import Callable, Dict, Any, Optional
from functools import wraps
import logging
import inspect
import traceback

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, DataError, OperationalError
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(APIError):
    """Resource not found error"""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            message=f"{resource} with identifier {identifier} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "identifier": str(identifier)},
        )


class ConflictError(APIError):
    """Resource conflict error"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message, status_code=status.HTTP_409_CONFLICT, details=details
        )


class ExpiredError(APIError):
    """Resource exists but is past its validity window"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, status_code=status.HTTP_410_GONE, details=details)


class APIValidationError(APIError):
    """Input validation error - named to avoid the Pydantic collision"""

    def __init__(self, message: str, errors: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"validation_errors": errors} if errors else {},
        )


class AuthorizationError(APIError):
    """Authorization error"""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


def handle_api_errors(func: Callable) -> Callable:
    """
    Turn service errors into HTTP responses for a route.

    ``APIError`` subclasses keep their status code and details; database
    errors are mapped to 409, 422 or 503 and anything else becomes a 500.
    Works on both async and sync routes.

    Usage:
        @router.post("/vouchers/redeem")
        @handle_api_errors
        async def redeem_voucher(...):
            ...
    """

    def handle_exception(e: Exception, func_name: str) -> None:
        if isinstance(e, APIError):
            logger.warning(
                f"API Error in {func_name}: {e.message}",
                extra={"status_code": e.status_code, "details": e.details},
            )
            raise HTTPException(
                status_code=e.status_code,
                detail={"message": e.message, "details": e.details},
            )

        if isinstance(e, HTTPException):
            raise e

        if isinstance(e, ValidationError):
            logger.warning(f"Model validation failed in {func_name}: {e.errors()}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={
                    "message": "Request validation failed",
                    "details": {
                        "validation_errors": e.errors(include_context=False, include_input=False)
                    },
                },
            )

        if isinstance(e, ValueError):
            logger.warning(f"Rejected value in {func_name}: {e}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": str(e), "details": {}},
            )

        if isinstance(e, IntegrityError):
            # Balances, voucher codes and e-mails are unique; a concurrent
            # writer that lost the race ends up here
            logger.error(f"Integrity error in {func_name}: {e.orig}")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail={"message": "The request conflicts with existing data", "details": {}},
            )

        if isinstance(e, DataError):
            logger.error(f"Data error in {func_name}: {e.orig}")
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail={"message": "Invalid data format or type", "details": {}},
            )

        if isinstance(e, OperationalError):
            logger.error(f"Database unavailable in {func_name}: {e.orig}")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail={"message": "Database service temporarily unavailable", "details": {}},
            )

        logger.error(f"Unexpected error in {func_name}: {e}\n{traceback.format_exc()}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "An unexpected error occurred", "details": {}},
        )

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                handle_exception(e, func.__name__)

        return async_wrapper

    @wraps(func)
    def sync_wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except Exception as e:
            handle_exception(e, func.__name__)

    return sync_wrapper
