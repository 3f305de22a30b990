"""
Test configuration and fixtures for Voice Calendar Service tests.

Provides settings, an in-memory integration store and a scripted calendar
provider so the core flows can be exercised without a database or Google.
"""

import os

# Set required environment variables before any imports
os.environ.setdefault("DB_URL_VOICE_CALENDAR", "sqlite:///:memory:")

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import pytest

from services.voice_calendar.core.calendar_provider import CalendarProvider
from services.voice_calendar.core.integration_store import IntegrationStore
from services.voice_calendar.models import Integration
from services.voice_calendar.schemas import CalendarEvent, CreatedEvent

PROVIDER = "google-calendar"


@pytest.fixture(autouse=True)
def patch_settings():
    """Patch the _settings global variable to return test settings."""
    import services.voice_calendar.core.settings as voice_settings

    test_settings = voice_settings.Settings(
        db_url_voice_calendar="sqlite:///:memory:",
        google_calendar_client_id="test-client-id",
        google_calendar_client_secret="test-client-secret",
        vapi_webhook_secret=None,
        TEST_MODE=False,
        TEST_USER_ID=None,
        BOOKING_IDEMPOTENCY_ENABLED=False,
    )

    voice_settings._settings = test_settings
    yield test_settings
    voice_settings._settings = None


class InMemoryIntegrationStore(IntegrationStore):
    def __init__(self) -> None:
        self.records: Dict[Tuple[str, str], Integration] = {}
        self.get_calls = 0
        self.updates: List[Tuple[str, str, str, datetime]] = []

    def add(
        self,
        user_id: str,
        access_token: Optional[str] = "stored-access-token",
        refresh_token: Optional[str] = "stored-refresh-token",
        expires_in: Optional[timedelta] = timedelta(hours=1),
    ) -> Integration:
        integration = Integration(
            user_id=user_id,
            provider=PROVIDER,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=(
                datetime.now(timezone.utc) + expires_in if expires_in is not None else None
            ),
        )
        self.records[(user_id, PROVIDER)] = integration
        return integration

    async def get(self, user_id: str, provider: str) -> Optional[Integration]:
        self.get_calls += 1
        stored = self.records.get((user_id, provider))
        if stored is None:
            return None
        # Hand out copies so callers cannot mutate the stored record
        return Integration(
            user_id=stored.user_id,
            provider=stored.provider,
            access_token=stored.access_token,
            refresh_token=stored.refresh_token,
            expires_at=stored.expires_at,
        )

    async def update_access_token(
        self, user_id: str, provider: str, access_token: str, expires_at: datetime
    ) -> None:
        self.updates.append((user_id, provider, access_token, expires_at))
        stored = self.records[(user_id, provider)]
        stored.access_token = access_token
        stored.expires_at = expires_at


class ScriptedCalendarProvider(CalendarProvider):
    def __init__(self) -> None:
        self.events: List[CalendarEvent] = []
        self.list_calls: List[Tuple[str, datetime, datetime]] = []
        self.create_calls: List[dict] = []
        self.list_error: Optional[Exception] = None
        self.create_error: Optional[Exception] = None

    async def list_events(
        self, access_token: str, time_min: datetime, time_max: datetime
    ) -> List[CalendarEvent]:
        self.list_calls.append((access_token, time_min, time_max))
        if self.list_error:
            raise self.list_error
        return list(self.events)

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
        self.create_calls.append(
            {
                "access_token": access_token,
                "title": title,
                "description": description,
                "start": start,
                "end": end,
                "attendee_emails": attendee_emails,
                "event_id": event_id,
            }
        )
        if self.create_error:
            raise self.create_error
        return CreatedEvent(
            event_id=event_id or "evt-created-1",
            event_url="https://calendar.google.com/event?eid=evt-created-1",
        )


@pytest.fixture
def integration_store():
    return InMemoryIntegrationStore()


@pytest.fixture
def calendar_provider():
    return ScriptedCalendarProvider()


def make_event(
    title: str, start: datetime, end: datetime, event_id: Optional[str] = None
) -> CalendarEvent:
    return CalendarEvent(id=event_id or title.lower().replace(" ", "-"), title=title, start=start, end=end)


@pytest.fixture
def event_factory():
    return make_event
