"""
Custom Exception Classes for the Roast API.

This module defines the exceptions raised along the roast pipeline. Each one
carries a message, a machine-readable error code and a `details` dictionary so
failures stay inspectable even where the HTTP layer chooses to answer with a
success-shaped body and a canned roast.

Key Components:
- `RoastAPIException`: The base exception class from which all other custom
  exceptions in this module inherit.
- `FetchError`: The text proxy was unreachable or answered with a non-success
  status.
- `GenerationError`: The completion API call failed. `kind` says how (missing
  credential, transport, HTTP status, empty body, unparsable body, malformed
  shape) and `retryable` tells the orchestrator whether another attempt can
  help.
- `PersistenceError`, `ShareNotFoundError`, `ValidationError`: storage and
  request errors.
- `to_http_exception`: Maps an exception to FastAPI's `HTTPException` using
  its error code.

Architectural Design:
- Hierarchy of Exceptions: Callers can catch a specific error or the common
  `RoastAPIException` base.
- Centralized Error Mapping: `to_http_exception` is the only place that turns
  error codes into HTTP status codes.
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException


class RoastAPIException(Exception):
    """Base exception class for Roast API"""

    def __init__(
        self,
        message: str,
        error_code: str = "ROAST_API_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_CODE_MAP.get(self.error_code, 500)


class ValidationError(RoastAPIException):
    """Raised when input validation fails"""

    def __init__(self, field: str, value: Any, reason: str):
        super().__init__(
            reason,
            "VALIDATION_ERROR",
            {"field": field, "value": str(value), "reason": reason},
        )


class FetchError(RoastAPIException):
    """Raised when the text proxy cannot deliver the profile page"""

    def __init__(self, url: str, reason: str, status: Optional[int] = None):
        details = {"url": url, "reason": reason}
        if status is not None:
            details["status"] = status
        super().__init__(
            "无法获取小红书内容，请检查链接是否有效",
            "FETCH_ERROR",
            details,
        )
        self.reason = reason


class GenerationError(RoastAPIException):
    """Raised when the completion API does not produce a usable roast"""

    MISSING_CREDENTIALS = "missing_credentials"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    EMPTY_RESPONSE = "empty_response"
    UNPARSABLE = "unparsable"
    MALFORMED_SHAPE = "malformed_shape"

    def __init__(self, kind: str, reason: str, status: Optional[int] = None):
        details = {"kind": kind, "reason": reason}
        if status is not None:
            details["status"] = status
        super().__init__(reason, "GENERATION_ERROR", details)
        self.kind = kind
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.kind != self.MISSING_CREDENTIALS


class PersistenceError(RoastAPIException):
    """Raised when database operations fail"""

    def __init__(self, operation: str, reason: str):
        super().__init__(
            f"Database operation '{operation}' failed: {reason}",
            "PERSISTENCE_ERROR",
            {"operation": operation, "reason": reason},
        )


class ShareNotFoundError(RoastAPIException):
    """Raised when no roast exists for a share token"""

    def __init__(self, share_id: str):
        super().__init__(
            f"No roast found for share id: {share_id}",
            "SHARE_NOT_FOUND",
            {"share_id": share_id},
        )


STATUS_CODE_MAP = {
    "VALIDATION_ERROR": 400,
    "SHARE_NOT_FOUND": 404,
    "FETCH_ERROR": 502,
    "GENERATION_ERROR": 502,
    "PERSISTENCE_ERROR": 500,
}


def to_http_exception(exc: RoastAPIException) -> HTTPException:
    """Convert RoastAPIException to FastAPI HTTPException"""
    return HTTPException(
        status_code=exc.status_code,
        detail={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )
