# backend/core/exceptions.py

"""
Application level exception handlers.

Routes are wrapped with ``handle_api_errors``; these handlers cover errors
raised from dependencies or anything else outside a decorated route.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
import logging

from .error_handling import APIError

logger = logging.getLogger(__name__)


def _error_body(request: Request, message: str, details: dict, error_code: str) -> dict:
    return {
        "detail": {"message": message, "details": details},
        "error_code": error_code,
        "path": str(request.url.path),
    }


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Service errors that escaped a route decorator"""
    logger.warning(f"{type(exc).__name__} at {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.message, exc.details, type(exc).__name__),
    )


async def handle_integrity_error(request: Request, exc: IntegrityError) -> JSONResponse:
    # Concurrent writers losing on a unique constraint (balances, voucher codes, e-mails)
    logger.error(f"Integrity error at {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content=_error_body(
            request, "The request conflicts with existing data", {}, "IntegrityError"
        ),
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(IntegrityError, handle_integrity_error)
