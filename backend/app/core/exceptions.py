"""
Global exception handlers for IQX Stock Express backend.

Catches exceptions and returns user-friendly (Vietnamese) error responses
while logging appropriately (provider throttling as warning, others as error).
"""
import math

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.logging_config import get_main_logger
from app.core.circuit_breaker import CircuitOpenError
from app.services.market_data.errors import ApiServiceError

logger = get_main_logger()

DEFAULT_RETRY_AFTER = 30


async def api_service_exception_handler(request: Request, exc: ApiServiceError) -> JSONResponse:
    """
    Handle upstream service errors.
    Client errors keep their status, everything else becomes 502.
    """
    if exc.is_client_error():
        status_code = exc.status_code
        logger.info(f"Upstream client error: {request.method} {request.url.path} - {exc.message}")
        message = exc.message
    else:
        status_code = 502
        logger.error(f"Upstream failure: {request.method} {request.url.path} - {type(exc).__name__}: {exc.message}")
        message = exc.user_message

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "detail": message,
            "error_type": "upstream_client_error" if exc.is_client_error() else "upstream_error",
        }
    )


async def circuit_breaker_exception_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
    """
    Handle circuit breaker open errors.
    Returns 503 Service Unavailable with retry information.
    """
    logger.warning(f"Circuit breaker open [{exc.provider}]: {request.method} {request.url.path}")
    retry_after = math.ceil(exc.retry_after) if exc.retry_after else DEFAULT_RETRY_AFTER
    return JSONResponse(
        status_code=503,
        content={
            "success": False,
            "detail": "Nguồn dữ liệu tạm thời không khả dụng. Vui lòng thử lại sau ít phút.",
            "error_type": "circuit_breaker_open",
            "retry_after": retry_after
        },
        headers={"Retry-After": str(retry_after)}
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all other unhandled exceptions.
    Logs as error and returns 500 response.
    """
    logger.error(f"Unhandled exception: {request.method} {request.url.path} - {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "detail": "Đã xảy ra lỗi hệ thống. Vui lòng thử lại sau.",
            "error_type": "internal_error"
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions (400, 404, ...) raised by route handlers."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "detail": exc.detail}
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(CircuitOpenError, circuit_breaker_exception_handler)
    app.add_exception_handler(ApiServiceError, api_service_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
