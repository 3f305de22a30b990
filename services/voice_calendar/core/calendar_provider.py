"""
Calendar provider abstraction used by the availability and booking flows.

``CalendarProvider`` is the seam the core logic talks to; the Google
implementation wraps ``GoogleCalendarAPIClient`` and turns transport and API
errors into ``ProviderQueryError`` / ``ProviderCreateError``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from services.common.http_errors import ProviderError
from services.common.logging_config import get_logger
from services.voice_calendar.core.clients.google import (
    GoogleCalendarAPIClient,
    to_rfc3339,
)
from services.voice_calendar.core.exceptions import (
    ProviderCreateError,
    ProviderQueryError,
)
from services.voice_calendar.core.normalizer import normalize_google_event_list
from services.voice_calendar.schemas import CalendarEvent, CreatedEvent

logger = get_logger(__name__)

# Reminder overrides applied to every booked meeting
DEFAULT_REMINDERS: Dict[str, Any] = {
    "useDefault": False,
    "overrides": [
        {"method": "email", "minutes": 60},
        {"method": "popup", "minutes": 15},
    ],
}

# Upper bound on pages followed for one availability window
MAX_EVENT_PAGES = 10


class CalendarProvider(ABC):
    """Operations the service needs from a user's primary calendar."""

    @abstractmethod
    async def list_events(
        self, access_token: str, time_min: datetime, time_max: datetime
    ) -> List[CalendarEvent]:
        """List events overlapping ``[time_min, time_max]`` in provider order."""

    @abstractmethod
    async def create_event(
        self,
        access_token: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        attendee_emails: List[str],
        event_id: Optional[str] = None,
    ) -> CreatedEvent:
        """Create an event and invite the attendees."""


class GoogleCalendarProvider(CalendarProvider):
    """CalendarProvider backed by the Google Calendar v3 API."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        base_url: str = "https://www.googleapis.com",
        calendar_id: str = "primary",
    ):
        self.http_client = http_client
        self.base_url = base_url
        self.calendar_id = calendar_id

    def _client(self, access_token: str) -> GoogleCalendarAPIClient:
        return GoogleCalendarAPIClient(
            access_token, http_client=self.http_client, base_url=self.base_url
        )

    async def list_events(
        self, access_token: str, time_min: datetime, time_max: datetime
    ) -> List[CalendarEvent]:
        events: List[CalendarEvent] = []
        page_token: Optional[str] = None

        async with self._client(access_token) as client:
            for _ in range(MAX_EVENT_PAGES):
                try:
                    payload = await client.get_events(
                        calendar_id=self.calendar_id,
                        time_min=time_min,
                        time_max=time_max,
                        page_token=page_token,
                    )
                    events.extend(normalize_google_event_list(payload))
                except ProviderError as e:
                    raise ProviderQueryError(
                        f"Failed to list calendar events: {e.message}",
                        provider=e.provider,
                        provider_status=e.provider_status,
                        response_body=e.response_body,
                    ) from e
                except ValueError as e:
                    raise ProviderQueryError(
                        f"Unreadable calendar events response: {e}",
                        provider="google",
                    ) from e

                page_token = payload.get("nextPageToken")
                if not page_token:
                    break
            else:
                logger.warning(
                    f"Stopped listing events after {MAX_EVENT_PAGES} pages",
                    time_min=to_rfc3339(time_min),
                    time_max=to_rfc3339(time_max),
                )

        logger.debug(f"Fetched {len(events)} events between {time_min} and {time_max}")
        return events

    async def create_event(
        self,
        access_token: str,
        title: str,
        description: str,
        start: datetime,
        end: datetime,
        attendee_emails: List[str],
        event_id: Optional[str] = None,
    ) -> CreatedEvent:
        event_data: Dict[str, Any] = {
            "summary": title,
            "description": description,
            "start": {"dateTime": to_rfc3339(start), "timeZone": "UTC"},
            "end": {"dateTime": to_rfc3339(end), "timeZone": "UTC"},
            "attendees": [{"email": email} for email in attendee_emails],
            "reminders": DEFAULT_REMINDERS,
        }
        if event_id:
            event_data["id"] = event_id

        async with self._client(access_token) as client:
            try:
                data = await client.create_event(event_data, calendar_id=self.calendar_id)
            except ProviderError as e:
                raise ProviderCreateError(
                    f"Failed to create calendar event: {e.message}",
                    provider=e.provider,
                    provider_status=e.provider_status,
                    response_body=e.response_body,
                ) from e
            except ValueError as e:
                raise ProviderCreateError(
                    f"Unreadable create event response: {e}",
                    provider="google",
                ) from e

        if not isinstance(data, dict) or not data.get("id"):
            raise ProviderCreateError("Create event response has no event id", provider="google")

        logger.info(
            "Calendar event created",
            event_id=data["id"],
            start=to_rfc3339(start),
            end=to_rfc3339(end),
        )
        return CreatedEvent(event_id=data["id"], event_url=data.get("htmlLink"))
