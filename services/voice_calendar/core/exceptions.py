"""
Domain exceptions for the Voice Calendar Service.

All of them derive from the shared ``ServiceAPIException`` hierarchy so they
carry an ``ErrorCode`` and HTTP status and render through the common FastAPI
handlers. The tool handlers translate them into spoken messages; the HTTP
status only matters when one escapes to the transport.
"""

from typing import Any, Dict, Optional

from services.common.http_errors import (
    AuthError,
    ErrorCode,
    ProviderError,
    ServiceAPIException,
    ValidationError,
)


# Date and time resolution
class InvalidDateFormatError(ValidationError):
    """Raised when a date string matches none of the accepted layouts."""

    def __init__(self, value: Any, reason: Optional[str] = None):
        message = f"Unrecognized date format: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message, field="date", value=value, code=ErrorCode.INVALID_DATE_FORMAT
        )


class InvalidTimeFormatError(ValidationError):
    """Raised when a time string is neither 12-hour nor 24-hour clock time."""

    def __init__(self, value: Any, reason: Optional[str] = None):
        message = f"Unrecognized time format: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(
            message, field="time", value=value, code=ErrorCode.INVALID_TIME_FORMAT
        )


class InvalidDurationError(ValidationError):
    """Raised when a meeting would end at or before its start."""

    def __init__(self, message: str, value: Any = None):
        super().__init__(
            message, field="duration", value=value, code=ErrorCode.INVALID_DURATION
        )


# Webhook invocation shape
class InvocationError(ServiceAPIException):
    """Base class for webhook bodies that cannot be turned into an invocation."""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message,
            details=details,
            error_type="invocation_error",
            error_code=code,
            status_code=400,
        )


class MissingInvocationError(InvocationError):
    def __init__(self, message: str = "No tool calls found"):
        super().__init__(message, ErrorCode.MISSING_INVOCATION)


class MalformedArgumentsError(InvocationError):
    def __init__(self, message: str = "Tool call arguments are not a JSON object"):
        super().__init__(message, ErrorCode.MALFORMED_ARGUMENTS)


class UnknownFunctionError(InvocationError):
    """Raised when the voice platform asks for a function this service does not offer."""

    def __init__(self, function_name: str):
        super().__init__(
            f"Unknown function: {function_name}",
            ErrorCode.UNKNOWN_FUNCTION,
            details={"function_name": function_name},
        )
        self.function_name = function_name


class MissingUserIdentityError(AuthError):
    """
    Raised when no user can be attributed to a webhook call.

    Carries the shape and tool call ID of the invocation, when known, so the
    transport can still answer in the layout the platform expects.
    """

    def __init__(
        self,
        message: str = "No user_id found in call metadata",
        shape: Any = None,
        correlation_id: Optional[str] = None,
    ):
        super().__init__(message, code=ErrorCode.USER_IDENTITY_MISSING)
        self.shape = shape
        self.correlation_id = correlation_id


# Integration state
class IntegrationError(ServiceAPIException):
    """Base class for calendar integrations that cannot be used as stored."""

    def __init__(self, message: str, code: ErrorCode, user_id: str, provider: str):
        super().__init__(
            message=message,
            details={"user_id": user_id, "provider": provider},
            error_type="integration_error",
            error_code=code,
            status_code=409,
        )
        self.user_id = user_id
        self.provider = provider


class CalendarNotConnectedError(IntegrationError):
    def __init__(self, user_id: str, provider: str):
        super().__init__(
            "Google Calendar not connected. Please connect your calendar in Integrations.",
            ErrorCode.CALENDAR_NOT_CONNECTED,
            user_id,
            provider,
        )


class CalendarReauthRequiredError(IntegrationError):
    def __init__(self, user_id: str, provider: str):
        super().__init__(
            "No refresh token available. Please reconnect your calendar.",
            ErrorCode.CALENDAR_REAUTH_REQUIRED,
            user_id,
            provider,
        )


class TokenRefreshError(ServiceAPIException):
    """Raised when the OAuth token endpoint does not yield a usable access token."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        token_details = details or {}
        if status_code is not None:
            token_details["token_endpoint_status"] = status_code
        super().__init__(
            message=message,
            details=token_details,
            error_type="token_error",
            error_code=ErrorCode.TOKEN_REFRESH_FAILED,
            status_code=502,
        )


# Calendar provider
class ProviderQueryError(ProviderError):
    """Raised when listing calendar events fails or yields an unreadable body."""

    def __init__(self, message: str, provider_status: Optional[int] = None, **kwargs: Any):
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_QUERY_FAILED,
            provider_status=provider_status,
            **kwargs,
        )


class ProviderCreateError(ProviderError):
    """Raised when creating a calendar event fails."""

    def __init__(self, message: str, provider_status: Optional[int] = None, **kwargs: Any):
        super().__init__(
            message,
            code=ErrorCode.PROVIDER_CREATE_FAILED,
            provider_status=provider_status,
            **kwargs,
        )
