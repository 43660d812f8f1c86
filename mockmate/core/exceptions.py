"""
Exception module

Business exceptions and the global exception handlers
"""
from typing import Dict, Optional
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger

from .response import error_response


class AppException(Exception):
    """Base application exception"""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        code: Optional[str] = None,
        data: Optional[dict] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        self.code = code or self.default_code
        self.data = data
        if status_code is not None:
            self.status_code = status_code
        self.headers = headers
        super().__init__(self.message)


class BadRequestException(AppException):
    """Invalid request"""
    status_code = 400
    default_code = "BAD_REQUEST"
    default_message = "Invalid request"


class UnauthorizedException(AppException):
    """Authentication failed"""
    status_code = 401
    default_code = "UNAUTHORIZED"
    default_message = "Authentication required"


class ForbiddenException(AppException):
    """Insufficient permissions"""
    status_code = 403
    default_code = "FORBIDDEN"
    default_message = "Access denied"


class NotFoundException(AppException):
    """Resource not found"""
    status_code = 404
    default_code = "NOT_FOUND"
    default_message = "Resource not found"


class ConflictException(AppException):
    """Resource already exists"""
    status_code = 409
    default_code = "CONFLICT"
    default_message = "Resource already exists"


class LockedException(AppException):
    """Account locked"""
    status_code = 423
    default_code = "ACCOUNT_LOCKED"
    default_message = "Account is temporarily locked"


class RateLimitException(AppException):
    """Too many requests"""
    status_code = 429
    default_code = "RATE_LIMIT_EXCEEDED"
    default_message = "Too many requests, please try again later"


class BadGatewayException(AppException):
    """Upstream provider failure"""
    status_code = 502
    default_code = "BAD_GATEWAY"
    default_message = "Upstream service error"


class ServiceUnavailableException(AppException):
    """Service unavailable"""
    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"
    default_message = "Service temporarily unavailable"


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Application exception handler"""
    logger.warning(
        "AppException: {} ({}) | Path: {}", exc.message, exc.code, request.url.path
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=exc.message, code=exc.code, status=exc.status_code, data=exc.data
        ),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP exception handler"""
    logger.warning("HTTPException: {} | Path: {}", exc.detail, request.url.path)
    code = "NOT_FOUND" if exc.status_code == 404 else f"HTTP_{exc.status_code}"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(message=str(exc.detail), code=code, status=exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request validation handler; field errors are returned as a 400"""
    details = []
    for error in exc.errors():
        loc = [str(part) for part in error["loc"] if part not in ("body", "query", "path")]
        details.append({
            "field": ".".join(loc) or "body",
            "message": error["msg"],
        })

    message = "; ".join(f"{d['field']}: {d['message']}" for d in details)
    logger.warning("ValidationError: {} | Path: {}", message, request.url.path)

    return JSONResponse(
        status_code=400,
        content=error_response(
            message="Validation failed",
            code="VALIDATION_ERROR",
            status=400,
            data={"errors": details}
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors"""
    logger.exception("Unhandled Exception: {} | Path: {}", exc, request.url.path)
    return JSONResponse(
        status_code=500,
        content=error_response(message="Internal server error", code="INTERNAL_ERROR", status=500)
    )
