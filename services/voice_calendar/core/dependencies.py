"""
Wiring of the calendar services.

Long-lived resources (the shared HTTP client and the database session
factory) are created in the application lifespan and kept on ``app.state``.
Request handlers reach the assembled ``ToolHandlers`` through
``get_tool_handlers``, which tests replace via ``app.dependency_overrides``.
"""

from datetime import timedelta

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from services.common.http_errors import ErrorCode, ServiceError
from services.voice_calendar.core.availability import AvailabilityEngine
from services.voice_calendar.core.booking import BookingOrchestrator
from services.voice_calendar.core.calendar_provider import GoogleCalendarProvider
from services.voice_calendar.core.integration_store import SqlIntegrationStore
from services.voice_calendar.core.settings import Settings
from services.voice_calendar.core.token_manager import TokenManager
from services.voice_calendar.core.tool_handlers import ToolHandlers


def build_tool_handlers(
    settings: Settings,
    http_client: httpx.AsyncClient,
    session_factory: async_sessionmaker[AsyncSession],
) -> ToolHandlers:
    """Assemble the calendar services around shared resources."""
    token_manager = TokenManager(SqlIntegrationStore(session_factory), http_client, settings)
    provider = GoogleCalendarProvider(http_client, base_url=settings.GOOGLE_API_BASE_URL)
    availability_engine = AvailabilityEngine(
        token_manager,
        provider,
        padding=timedelta(minutes=settings.AVAILABILITY_PADDING_MINUTES),
    )
    booking_orchestrator = BookingOrchestrator(availability_engine, token_manager, provider)
    return ToolHandlers(availability_engine, booking_orchestrator, settings)


def get_tool_handlers(request: Request) -> ToolHandlers:
    tool_handlers = getattr(request.app.state, "tool_handlers", None)
    if tool_handlers is None:
        raise ServiceError(
            "Calendar services are not initialized",
            code=ErrorCode.SERVICE_UNAVAILABLE,
            status_code=503,
        )
    return tool_handlers
