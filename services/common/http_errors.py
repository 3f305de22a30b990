"""
Shared HTTP error classes and utilities for the voice calendar services.

Provides:
- Base exception class for API errors
- Common subclasses (Validation, Auth, NotFound, Service, Provider)
- Shared error response model
- Utility to convert exceptions to error responses
- FastAPI exception handler registration

Basic usage:
>>> from services.common.http_errors import ValidationError, ProviderError
>>>
>>> error = ValidationError("Invalid date", field="date", value="2026-13-01")
>>> error = ProviderError(
...     "Google API rate limit exceeded",
...     provider="google",
...     code=ErrorCode.GOOGLE_RATE_LIMITED,
...     retry_after=30,
... )

FastAPI integration:
>>> from fastapi import FastAPI
>>> from services.common.http_errors import register_exception_handlers
>>>
>>> app = FastAPI()
>>> register_exception_handlers(app)

Error Code Taxonomy:
===================
- VALIDATION_* / INVALID_* : Input validation errors (422)
- MISSING_* / MALFORMED_* / UNKNOWN_* : Malformed webhook invocations (400)
- AUTH_* / USER_IDENTITY_* : Authentication errors (401)
- CALENDAR_* : Integration state errors (409)
- TOKEN_* : Token exchange errors (502)
- PROVIDER_* / GOOGLE_* : External provider errors (502)
- SERVICE_* / DATABASE_* : Internal service errors (5xx)
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from services.common.logging_config import log_http_error, request_id_var


class ErrorCode(str, Enum):
    """Standardized error codes, grouped by category."""

    # General
    VALIDATION_FAILED = "VALIDATION_FAILED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Input validation
    INVALID_DATE_FORMAT = "INVALID_DATE_FORMAT"
    INVALID_TIME_FORMAT = "INVALID_TIME_FORMAT"
    INVALID_DURATION = "INVALID_DURATION"

    # Webhook invocation shape
    MISSING_INVOCATION = "MISSING_INVOCATION"
    MALFORMED_ARGUMENTS = "MALFORMED_ARGUMENTS"
    UNKNOWN_FUNCTION = "UNKNOWN_FUNCTION"

    # Authentication
    AUTH_FAILED = "AUTH_FAILED"
    WEBHOOK_SECRET_INVALID = "WEBHOOK_SECRET_INVALID"
    USER_IDENTITY_MISSING = "USER_IDENTITY_MISSING"

    # Calendar integration state
    CALENDAR_NOT_CONNECTED = "CALENDAR_NOT_CONNECTED"
    CALENDAR_REAUTH_REQUIRED = "CALENDAR_REAUTH_REQUIRED"
    SLOT_UNAVAILABLE = "SLOT_UNAVAILABLE"

    # Token exchange
    TOKEN_REFRESH_FAILED = "TOKEN_REFRESH_FAILED"

    # Service
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    SERVICE_ERROR = "SERVICE_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Provider (generic)
    PROVIDER_ERROR = "PROVIDER_ERROR"
    PROVIDER_QUERY_FAILED = "PROVIDER_QUERY_FAILED"
    PROVIDER_CREATE_FAILED = "PROVIDER_CREATE_FAILED"

    # Google API specific
    GOOGLE_AUTH_FAILED = "GOOGLE_AUTH_FAILED"
    GOOGLE_TOKEN_EXPIRED = "GOOGLE_TOKEN_EXPIRED"
    GOOGLE_INSUFFICIENT_PERMISSIONS = "GOOGLE_INSUFFICIENT_PERMISSIONS"
    GOOGLE_ACCESS_DENIED = "GOOGLE_ACCESS_DENIED"
    GOOGLE_QUOTA_EXCEEDED = "GOOGLE_QUOTA_EXCEEDED"
    GOOGLE_RATE_LIMITED = "GOOGLE_RATE_LIMITED"
    GOOGLE_CONFLICT = "GOOGLE_CONFLICT"
    GOOGLE_SERVICE_ERROR = "GOOGLE_SERVICE_ERROR"
    GOOGLE_API_ERROR = "GOOGLE_API_ERROR"


class ErrorResponse(BaseModel):
    """
    Standardized error response body.

    Attributes:
        type: Error type categorization (e.g., "validation_error")
        message: Human-readable error message
        details: Optional additional error context, including ``code``
        timestamp: ISO 8601 timestamp of when the error occurred
        request_id: Identifier used to correlate the response with logs
    """

    type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: str
    request_id: str


def _current_request_id() -> str:
    """Return the request ID of the current HTTP request, or a fresh UUID."""
    request_id = request_id_var.get()
    if request_id and request_id != "uninitialized":
        return request_id
    return str(uuid.uuid4())


class ServiceAPIException(Exception):
    """
    Base exception class for all service API errors.

    Carries everything needed to render a standardized ``ErrorResponse``:
    message, details, error type, error code and HTTP status. The request ID
    is taken from the current request context when one is active so that the
    response body matches the request's log lines.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_type: str = "internal_error",
        error_code: Optional[ErrorCode] = None,
        status_code: int = 500,
        request_id: Optional[str] = None,
    ):
        self.message = message
        self.details = details or {}
        self.error_type = error_type
        self.error_code = error_code
        self.status_code = status_code
        self.timestamp = datetime.now(timezone.utc).isoformat()
        self.request_id = request_id or _current_request_id()
        super().__init__(self.message)

    def to_error_response(self) -> ErrorResponse:
        """Convert the exception to an ``ErrorResponse``, adding ``code`` to details."""
        details = {
            **self.details,
            **({"code": self.error_code.value} if self.error_code else {}),
        }
        return ErrorResponse(
            type=self.error_type,
            message=self.message,
            details=details if details else None,
            timestamp=self.timestamp,
            request_id=self.request_id,
        )


class ValidationError(ServiceAPIException):
    """
    Exception for input validation errors (HTTP 422).

    Args:
        message: Human-readable description of the validation failure
        field: Optional field name that failed validation
        value: Optional invalid value that was provided
        details: Optional additional validation context
        code: Specific error code (defaults to VALIDATION_FAILED)
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Any = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
    ):
        validation_details = details or {}
        if field:
            validation_details["field"] = field
        if value is not None:
            validation_details["value"] = str(value)
        super().__init__(
            message=message,
            details=validation_details,
            error_type="validation_error",
            error_code=code,
            status_code=422,
        )
        self.field = field
        self.value = value


class NotFoundError(ServiceAPIException):
    """Exception for resource not found errors (HTTP 404)."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        message = f"{resource} {identifier} not found" if identifier else f"{resource} not found"
        super().__init__(
            message=message,
            details={**(details or {}), "resource": resource, "identifier": identifier},
            error_type="not_found",
            error_code=ErrorCode.NOT_FOUND,
            status_code=404,
        )
        self.resource = resource
        self.identifier = identifier


class AuthError(ServiceAPIException):
    """Exception for authentication errors (HTTP 401 by default)."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.AUTH_FAILED,
        status_code: int = 401,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="auth_error",
            error_code=code,
            status_code=status_code,
        )


class ServiceError(ServiceAPIException):
    """
    Exception for internal service errors (HTTP 502 by default).

    Used for downstream failures that are not attributable to an external
    provider, such as the database being unreachable.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.SERVICE_ERROR,
        status_code: int = 502,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="service_error",
            error_code=code,
            status_code=status_code,
        )


class ProviderError(ServiceAPIException):
    """
    Exception for external provider integration errors (HTTP 502 by default).

    Attributes:
        provider: Name of the external provider (google, ...)
        response_body: Raw response body from the provider, for diagnostics only
        retry_after: Seconds to wait before retrying (from rate limit headers)
        provider_status: HTTP status the provider answered with, if any
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        code: ErrorCode = ErrorCode.PROVIDER_ERROR,
        status_code: int = 502,
        response_body: Optional[str] = None,
        retry_after: Optional[int] = None,
        provider_status: Optional[int] = None,
    ):
        provider_details = details or {}
        if provider:
            provider_details["provider"] = provider
        if retry_after is not None:
            provider_details["retry_after"] = retry_after
        if provider_status is not None:
            provider_details["provider_status"] = provider_status
        super().__init__(
            message=message,
            details=provider_details,
            error_type="provider_error",
            error_code=code,
            status_code=status_code,
        )
        self.provider = provider
        self.response_body = response_body
        self.retry_after = retry_after
        self.provider_status = provider_status


def exception_to_response(exc: Exception) -> ErrorResponse:
    """
    Convert any exception to a standardized ErrorResponse.

    Unknown exceptions become a generic ``internal_error`` whose message does
    not include the exception text; only the exception class name is kept in
    the details.
    """
    if isinstance(exc, ServiceAPIException):
        return exc.to_error_response()
    if isinstance(exc, HTTPException):
        detail = exc.detail if isinstance(exc.detail, dict) else {"message": str(exc.detail)}
        return ErrorResponse(
            type="http_error",
            message=detail.get("message", "HTTP error"),
            details=detail,
            timestamp=datetime.now(timezone.utc).isoformat(),
            request_id=_current_request_id(),
        )
    return ErrorResponse(
        type="internal_error",
        message="An unexpected error occurred",
        details={"error_type": type(exc).__name__},
        timestamp=datetime.now(timezone.utc).isoformat(),
        request_id=_current_request_id(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register JSON exception handlers on a FastAPI application.

    - ServiceAPIException: the exception's own status code and details
    - HTTPException: the original status code, normalized body
    - Exception: HTTP 500 with a generic body
    """

    @app.exception_handler(ServiceAPIException)
    async def service_api_exception_handler(
        request: Request, exc: ServiceAPIException
    ) -> JSONResponse:
        error_response = exc.to_error_response()
        log_http_error(
            exc.error_type,
            exc.message,
            exc.status_code,
            request_id=error_response.request_id,
            details=error_response.details,
        )
        return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        error_response = exception_to_response(exc)
        return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        error_response = exception_to_response(exc)
        log_http_error(
            "internal_error",
            f"Unhandled {type(exc).__name__}",
            500,
            request_id=error_response.request_id,
        )
        return JSONResponse(status_code=500, content=error_response.model_dump())
