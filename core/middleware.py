"""
Application Middleware for the Roast API.

This module defines the FastAPI middleware and exception handlers responsible
for cross-cutting concerns: request correlation, error rendering, request
timing and basic request validation.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to every incoming request,
  which is then attached to every log line emitted while handling it.
- `ErrorHandlingMiddleware`: Catches anything unexpected and renders the
  standard JSON error body with status 500.
- `PerformanceMiddleware`: Logs the start and end of each request and adds an
  `X-Process-Time` header. Roast requests routinely take several seconds
  because of the completion API, so the slow-request threshold is generous.
- `RequestValidationMiddleware`: Rejects oversized bodies and unsupported
  content types before they reach the routes.
- `roast_api_exception_handler`: Renders `RoastAPIException` subclasses raised
  by routes using `to_http_exception`.
"""

import time
import uuid
from typing import Callable, Dict, Any
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging_config import set_correlation_id, get_logger
from .exceptions import RoastAPIException, to_http_exception

logger = get_logger("core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id

        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for unexpected errors"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return create_error_response(
                "InternalServerError",
                "INTERNAL_ERROR",
                "An unexpected error occurred",
                status_code=500,
                correlation_id=getattr(request.state, "correlation_id", None),
            )


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for request timing and logging"""

    def __init__(self, app: ASGIApp, slow_request_seconds: float = 30.0):
        super().__init__(app)
        self.slow_request_seconds = slow_request_seconds

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "client_ip": request.client.host if request.client else None,
            },
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            },
        )

        if process_time > self.slow_request_seconds:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "path": request.url.path,
                    "process_time_ms": round(process_time * 1000, 2),
                    "threshold_exceeded": True,
                },
            )

        return response


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Middleware for request size and content type validation"""

    def __init__(self, app: ASGIApp, max_request_size: int = 1024 * 1024):
        super().__init__(app)
        self.max_request_size = max_request_size

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > self.max_request_size:
            logger.warning(
                f"Request too large: {content_length} bytes",
                extra={"content_length": int(content_length), "path": request.url.path},
            )
            return create_error_response(
                "PayloadTooLarge",
                "REQUEST_TOO_LARGE",
                f"Request size exceeds maximum allowed size of {self.max_request_size} bytes",
                status_code=413,
            )

        if request.method in ["POST", "PUT", "PATCH"]:
            content_type = request.headers.get("content-type", "")
            if "application/json" not in content_type:
                logger.warning(
                    f"Invalid content type: {content_type}",
                    extra={"content_type": content_type, "path": request.url.path},
                )
                return create_error_response(
                    "UnsupportedMediaType",
                    "INVALID_CONTENT_TYPE",
                    f"Content type '{content_type}' is not supported",
                    status_code=415,
                )

        return await call_next(request)


async def roast_api_exception_handler(
    request: Request, exc: RoastAPIException
) -> JSONResponse:
    """Render application exceptions raised by routes"""
    http_exc = to_http_exception(exc)
    log = logger.warning if http_exc.status_code < 500 else logger.error
    log(
        f"Application error: {exc.message}",
        extra={
            "error_type": type(exc).__name__,
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return create_error_response(
        type(exc).__name__,
        exc.error_code,
        exc.message,
        status_code=http_exc.status_code,
        correlation_id=getattr(request.state, "correlation_id", None),
        details=exc.details,
    )


def create_error_response(
    error_type: str,
    error_code: str,
    message: str,
    status_code: int = 400,
    correlation_id: str = None,
    details: Dict[str, Any] = None,
) -> JSONResponse:
    """Create standardized error response"""

    error_data = {"error": {"type": error_type, "code": error_code, "message": message}}

    if correlation_id:
        error_data["error"]["correlation_id"] = correlation_id

    if details:
        error_data["error"]["details"] = details

    return JSONResponse(status_code=status_code, content=error_data)
