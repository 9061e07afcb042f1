"""
Standardized error responses for the storefront public access API.

This module provides consistent error response formatting across all endpoints.
Public token endpoints only ever raise PublicResourceNotFound, whatever the
underlying reason, so clients cannot tell an expired token from a bogus one.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storefront.core.middleware import redact_exception_args, redact_token_from_url

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication errors (1xxx)
    INVALID_CREDENTIALS = "AUTH_1001"

    # Authorization errors (2xxx)
    PERMISSION_DENIED = "AUTHZ_2001"

    # Validation errors (3xxx)
    VALIDATION_ERROR = "VAL_3001"
    INVALID_INPUT = "VAL_3002"

    # Resource errors (4xxx)
    RESOURCE_NOT_FOUND = "RES_4001"
    RESOURCE_CONFLICT = "RES_4005"

    # System errors (6xxx)
    INTERNAL_ERROR = "SYS_6001"
    DATABASE_ERROR = "SYS_6002"
    RATE_LIMIT_EXCEEDED = "SYS_6004"
    SERVICE_UNAVAILABLE = "SYS_6005"


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = None
    message: str
    code: str | None = None


class APIError(BaseModel):
    """Standardized API error response."""

    error: str
    code: ErrorCode
    message: str
    details: list[ErrorDetail] | None = None
    request_id: str | None = None
    timestamp: str | None = None


class APIException(HTTPException):
    """Extended HTTPException with standardized error codes."""

    def __init__(
        self,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: list[ErrorDetail] | None = None,
        headers: dict[str, str] | None = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message, headers=headers)


class PublicResourceNotFound(APIException):
    """The single outward failure for every public token problem.

    Deliberately takes no arguments: malformed, unknown, expired, reused and
    mismatched tokens must all produce byte-identical responses.
    """

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message="Resource not found",
        )


class UnauthorizedError(APIException):
    """Authentication required error."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ErrorCode.INVALID_CREDENTIALS,
            message=message,
        )


class ServiceUnavailableError(APIException):
    """Feature disabled or dependency unavailable."""

    def __init__(self, message: str = "Service unavailable"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.SERVICE_UNAVAILABLE,
            message=message,
        )


class TokenIssueError(APIException):
    """Token could not be minted (storage failure, details logged only)."""

    def __init__(self, message: str = "Failed to create access token"):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code=ErrorCode.DATABASE_ERROR,
            message=message,
        )


def create_error_response(
    code: ErrorCode,
    message: str,
    details: list[ErrorDetail] | None = None,
    request_id: str | None = None,
    include_timestamp: bool = True,
) -> dict[str, Any]:
    """Create a standardized error response dictionary."""
    response = {
        "error": code.name.lower().replace("_", " ").title(),
        "code": code.value,
        "message": message,
    }

    if include_timestamp:
        response["timestamp"] = datetime.now(timezone.utc).isoformat()

    if details:
        response["details"] = [d.model_dump(exclude_none=True) for d in details]

    if request_id:
        response["request_id"] = request_id

    return response


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Handle APIException and return standardized response."""
    request_id = getattr(request.state, "request_id", None)

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=exc.code,
            message=exc.message,
            details=exc.details,
            request_id=request_id,
            # Public 404s are compared byte-for-byte by tests and must not vary
            include_timestamp=not isinstance(exc, PublicResourceNotFound),
        ),
        headers=exc.headers,
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle standard HTTPException and convert to standardized response."""
    request_id = getattr(request.state, "request_id", None)

    status_to_code = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.INVALID_CREDENTIALS,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.INVALID_INPUT,
        429: ErrorCode.RATE_LIMIT_EXCEEDED,
        500: ErrorCode.INTERNAL_ERROR,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }

    code = status_to_code.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    message = exc.detail if isinstance(exc.detail, str) else "An error occurred"

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            code=code,
            message=message,
            request_id=request_id,
        ),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking tokens or internals."""
    exc = redact_exception_args(exc)
    logger.error(
        "Unhandled exception on %s: %s",
        redact_token_from_url(str(request.url)),
        exc,
        exc_info=exc,
    )

    request_id = getattr(request.state, "request_id", None)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=create_error_response(
            code=ErrorCode.INTERNAL_ERROR,
            message="An unexpected error occurred",
            request_id=request_id,
        ),
    )
