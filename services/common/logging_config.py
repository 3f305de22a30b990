"""
Centralized logging configuration for the voice calendar services.

Every service process calls ``setup_service_logging`` once at startup. After
that, modules obtain structured loggers with ``get_logger(__name__)`` and log
either f-string messages or keyword context; both end up in the same
structlog pipeline.

The pipeline adds:
- the current request ID (set by the HTTP middleware)
- the current user ID (set once a webhook has been attributed to a user)
- the service name derived from the logger path
- an ISO timestamp

Usage:
    from services.common.logging_config import setup_service_logging

    setup_service_logging(
        service_name="voice-calendar",
        log_level="INFO",
        log_format="json",
    )
"""

import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog
from fastapi import Request, Response

# Context variables for request-specific data
request_id_var: ContextVar[str] = ContextVar("request_id", default="uninitialized")
user_id_var: ContextVar[str] = ContextVar("user_id", default="anonymous")

# Keys rendered in the line prefix rather than as trailing key=value pairs
_PREFIX_KEYS = ("timestamp", "level", "logger", "event", "service", "request_id", "user_id")


class RequestContextFilter(logging.Filter):
    """Copy request context from contextvars onto stdlib log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        record.user_id = user_id_var.get()
        if not hasattr(record, "service_name"):
            record.service_name = getattr(record, "service", "unknown")
        return True


def add_request_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Add request and user ID to all log entries."""
    request_id = request_id_var.get()
    user_id = user_id_var.get()
    if request_id and request_id != "uninitialized":
        event_dict.setdefault("request_id", request_id)
    if user_id and user_id != "anonymous":
        event_dict.setdefault("user_id", user_id)
    return event_dict


def add_service_context(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Derive the service name from a ``services.<name>.*`` logger path."""
    logger_name = event_dict.get("logger", "")
    if logger_name.startswith("services."):
        service_parts = logger_name.split(".")
        if len(service_parts) >= 2:
            event_dict.setdefault("service", service_parts[1])
    return event_dict


class EnhancedTextRenderer:
    """Human-readable renderer used when LOG_FORMAT is not ``json``."""

    def __init__(self, service_name: str):
        self.service_name = service_name

    def __call__(
        self,
        logger: structlog.types.WrappedLogger,
        method_name: str,
        event_dict: structlog.types.EventDict,
    ) -> str:
        timestamp = event_dict.get("timestamp", "")
        level = str(event_dict.get("level", "info")).upper()
        logger_name = event_dict.get("logger", "")
        message = event_dict.get("event", "")
        service = event_dict.get("service", self.service_name)

        # Last 4 chars of the request ID are enough to follow one webhook call
        request_id = event_dict.get("request_id", "")
        request_tag = f"[{request_id[-4:]}]" if request_id else ""

        user_id = event_dict.get("user_id", "")
        user_info = f" | User: {user_id}" if user_id else ""

        if logger_name.startswith("services."):
            logger_name = logger_name[len("services.") :]

        parts = [
            timestamp,
            f"[{service}]",
            f"[{level}]",
            request_tag,
            logger_name,
            f"- {message}{user_info}",
        ]

        extra_context = []
        for key, value in event_dict.items():
            if key in _PREFIX_KEYS:
                continue
            if isinstance(value, (str, int, float, bool)) or value is None:
                extra_context.append(f"{key}={value}")
            else:
                extra_context.append(f"{key}={str(value)[:150]}")
        if extra_context:
            parts.append(f"| {', '.join(extra_context)}")

        return " ".join(filter(None, parts))


def setup_service_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
) -> None:
    """
    Set up logging configuration for a service.

    Args:
        service_name: Name of the service (e.g., "voice-calendar")
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Format type ("json" or "text")
    """
    processors: list = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        add_request_context,
        add_service_context,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(EnhancedTextRenderer(service_name))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(RequestContextFilter())

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        handlers=[handler],
        force=True,
    )

    # Silence verbose third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    get_logger(__name__).info(
        f"Logging configured for {service_name}",
        log_level=log_level,
        log_format=log_format,
    )


def create_request_logging_middleware() -> Callable:
    """
    Create HTTP request logging middleware for FastAPI.

    The middleware honours an inbound ``X-Request-Id`` header (or generates
    one), echoes it on the response and logs request start and completion.
    """

    async def log_requests(request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request_id_var.set(request_id)
        user_id_var.set(request.headers.get("X-User-Id") or "anonymous")

        start_time = time.time()
        logger = get_logger("http.requests")
        logger.info(
            f"→ {request.method} {request.url.path}",
            method=request.method,
            client_ip=request.client.host if request.client else "unknown",
            user_agent=request.headers.get("user-agent"),
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        log_method = logger.warning if response.status_code >= 400 else logger.info
        log_method(
            f"{request.method} {request.url.path} → "
            f"{response.status_code} ({process_time:.3f}s)",
            status_code=response.status_code,
            process_time=process_time,
        )
        response.headers["X-Request-Id"] = request_id
        return response

    return log_requests


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


def log_service_startup(service_name: str, **kwargs: Any) -> None:
    """Log service startup with configuration details."""
    get_logger("startup").info(f"Starting {service_name}", service=service_name, **kwargs)


def log_service_shutdown(service_name: str) -> None:
    """Log service shutdown event."""
    get_logger(__name__).info(f"Service {service_name} shutting down")


def log_http_error(
    error_type: str,
    message: str,
    status_code: int,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log an HTTP error response at a level matching its status code.

    5xx responses are logged as errors, 4xx as warnings, anything else as info.
    """
    logger = get_logger(__name__)
    log_context: Dict[str, Any] = {
        "error_type": error_type,
        "status_code": status_code,
    }
    if request_id:
        log_context["request_id"] = request_id
    if details:
        log_context["details"] = details

    if status_code >= 500:
        log_method = logger.error
    elif status_code >= 400:
        log_method = logger.warning
    else:
        log_method = logger.info
    log_method(f"HTTP {status_code} {error_type}: {message}", **log_context)
