"""
Tests for the Google Calendar API client, event normalization and provider.

HTTP traffic is intercepted with respx.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest
import pytest_asyncio
import respx

from services.common.http_errors import ErrorCode, ProviderError
from services.voice_calendar.core.calendar_provider import GoogleCalendarProvider
from services.voice_calendar.core.clients.google import GoogleCalendarAPIClient
from services.voice_calendar.core.exceptions import (
    ProviderCreateError,
    ProviderQueryError,
)
from services.voice_calendar.core.normalizer import normalize_google_calendar_event

EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

WINDOW_START = datetime(2026, 1, 20, 13, 0, tzinfo=timezone.utc)
WINDOW_END = datetime(2026, 1, 20, 15, 30, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def http_client():
    client = httpx.AsyncClient()
    yield client
    await client.aclose()


@pytest.fixture
def provider(http_client):
    return GoogleCalendarProvider(http_client)


class TestNormalizer:
    def test_timed_event_converted_to_utc(self):
        event = normalize_google_calendar_event(
            {
                "id": "evt-1",
                "summary": "Standup",
                "start": {"dateTime": "2026-01-20T09:00:00-05:00"},
                "end": {"dateTime": "2026-01-20T09:15:00-05:00"},
            }
        )
        assert event.title == "Standup"
        assert event.start == datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)
        assert event.end == datetime(2026, 1, 20, 14, 15, tzinfo=timezone.utc)
        assert event.all_day is False

    def test_missing_summary_is_busy(self):
        event = normalize_google_calendar_event(
            {
                "id": "evt-2",
                "start": {"dateTime": "2026-01-20T14:00:00Z"},
                "end": {"dateTime": "2026-01-20T15:00:00Z"},
            }
        )
        assert event.title == "Busy"

    def test_all_day_event(self):
        event = normalize_google_calendar_event(
            {
                "id": "evt-3",
                "summary": "Offsite",
                "start": {"date": "2026-01-20"},
                "end": {"date": "2026-01-21"},
            }
        )
        assert event.all_day is True
        assert event.start == datetime(2026, 1, 20, tzinfo=timezone.utc)
        assert event.end == datetime(2026, 1, 21, tzinfo=timezone.utc)

    def test_event_without_times_raises(self):
        with pytest.raises(ValueError):
            normalize_google_calendar_event({"id": "evt-4", "start": {}, "end": {}})


class TestGoogleCalendarAPIClient:
    @pytest.mark.asyncio
    @respx.mock
    async def test_get_events_sends_window_and_auth(self, http_client):
        route = respx.get(EVENTS_URL).mock(return_value=httpx.Response(200, json={"items": []}))

        async with GoogleCalendarAPIClient("access-123", http_client=http_client) as client:
            await client.get_events(time_min=WINDOW_START, time_max=WINDOW_END)

        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer access-123"
        assert request.url.params["timeMin"] == "2026-01-20T13:00:00Z"
        assert request.url.params["timeMax"] == "2026-01-20T15:30:00Z"
        assert request.url.params["singleEvents"] == "true"
        assert request.url.params["orderBy"] == "startTime"

    @pytest.mark.asyncio
    @respx.mock
    async def test_borrowed_client_is_not_closed(self, http_client):
        respx.get(EVENTS_URL).mock(return_value=httpx.Response(200, json={"items": []}))

        async with GoogleCalendarAPIClient("token", http_client=http_client) as client:
            await client.get_events()

        assert not http_client.is_closed

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status_code, body, expected_code",
        [
            (401, {"error": {"message": "Invalid Credentials"}}, ErrorCode.GOOGLE_AUTH_FAILED),
            (
                403,
                {"error": {"errors": [{"reason": "rateLimitExceeded"}], "message": "Rate"}},
                ErrorCode.GOOGLE_QUOTA_EXCEEDED,
            ),
            (429, {"error": {"message": "Too many"}}, ErrorCode.GOOGLE_RATE_LIMITED),
            (503, {"error": {"message": "Backend Error"}}, ErrorCode.GOOGLE_SERVICE_ERROR),
            (400, {"error": {"message": "Bad Request"}}, ErrorCode.GOOGLE_API_ERROR),
        ],
    )
    @respx.mock
    async def test_error_classification(self, http_client, status_code, body, expected_code):
        respx.get(EVENTS_URL).mock(return_value=httpx.Response(status_code, json=body))

        async with GoogleCalendarAPIClient("token", http_client=http_client) as client:
            with pytest.raises(ProviderError) as exc_info:
                await client.get_events()

        assert exc_info.value.error_code == expected_code
        assert exc_info.value.provider_status == status_code


class TestGoogleCalendarProvider:
    @pytest.mark.asyncio
    @respx.mock
    async def test_list_events_preserves_order(self, provider):
        respx.get(EVENTS_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "id": "a",
                            "summary": "First",
                            "start": {"dateTime": "2026-01-20T13:30:00Z"},
                            "end": {"dateTime": "2026-01-20T14:15:00Z"},
                        },
                        {
                            "id": "b",
                            "start": {"dateTime": "2026-01-20T14:20:00Z"},
                            "end": {"dateTime": "2026-01-20T15:00:00Z"},
                        },
                        {
                            "id": "c",
                            "status": "cancelled",
                            "start": {"dateTime": "2026-01-20T14:00:00Z"},
                            "end": {"dateTime": "2026-01-20T15:00:00Z"},
                        },
                    ]
                },
            )
        )

        events = await provider.list_events("token", WINDOW_START, WINDOW_END)

        assert [e.title for e in events] == ["First", "Busy"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_events_follows_pages(self, provider):
        route = respx.get(EVENTS_URL).mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "items": [
                            {
                                "id": "a",
                                "summary": "Page one",
                                "start": {"dateTime": "2026-01-20T13:30:00Z"},
                                "end": {"dateTime": "2026-01-20T14:00:00Z"},
                            }
                        ],
                        "nextPageToken": "page-2",
                    },
                ),
                httpx.Response(
                    200,
                    json={
                        "items": [
                            {
                                "id": "b",
                                "summary": "Page two",
                                "start": {"dateTime": "2026-01-20T14:30:00Z"},
                                "end": {"dateTime": "2026-01-20T15:00:00Z"},
                            }
                        ]
                    },
                ),
            ]
        )

        events = await provider.list_events("token", WINDOW_START, WINDOW_END)

        assert [e.title for e in events] == ["Page one", "Page two"]
        assert route.calls[1].request.url.params["pageToken"] == "page-2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_events_http_error(self, provider):
        respx.get(EVENTS_URL).mock(
            return_value=httpx.Response(500, json={"error": {"message": "Backend Error"}})
        )
        with pytest.raises(ProviderQueryError) as exc_info:
            await provider.list_events("token", WINDOW_START, WINDOW_END)
        assert exc_info.value.error_code == ErrorCode.PROVIDER_QUERY_FAILED
        assert exc_info.value.provider_status == 500

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_events_malformed_body(self, provider):
        respx.get(EVENTS_URL).mock(return_value=httpx.Response(200, text="not json"))
        with pytest.raises(ProviderQueryError):
            await provider.list_events("token", WINDOW_START, WINDOW_END)

    @pytest.mark.asyncio
    @respx.mock
    async def test_list_events_timeout(self, provider):
        respx.get(EVENTS_URL).mock(side_effect=httpx.ReadTimeout("timed out"))
        with pytest.raises(ProviderQueryError):
            await provider.list_events("token", WINDOW_START, WINDOW_END)

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_event_request_body(self, provider):
        route = respx.post(EVENTS_URL).mock(
            return_value=httpx.Response(
                200, json={"id": "evt-new", "htmlLink": "https://calendar.google.com/e/evt-new"}
            )
        )

        created = await provider.create_event(
            "token",
            title="Meeting with Ada",
            description="Scheduled via AI call",
            start=datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc),
            end=datetime(2026, 1, 20, 14, 30, tzinfo=timezone.utc),
            attendee_emails=["ada@example.com"],
        )

        assert created.event_id == "evt-new"
        assert created.event_url == "https://calendar.google.com/e/evt-new"

        request = route.calls.last.request
        assert request.url.params["sendUpdates"] == "all"
        body = json.loads(request.content)
        assert body["summary"] == "Meeting with Ada"
        assert body["start"] == {"dateTime": "2026-01-20T14:00:00Z", "timeZone": "UTC"}
        assert body["end"] == {"dateTime": "2026-01-20T14:30:00Z", "timeZone": "UTC"}
        assert body["attendees"] == [{"email": "ada@example.com"}]
        assert body["reminders"] == {
            "useDefault": False,
            "overrides": [
                {"method": "email", "minutes": 60},
                {"method": "popup", "minutes": 15},
            ],
        }
        assert "id" not in body

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_event_conflict_keeps_provider_status(self, provider):
        respx.post(EVENTS_URL).mock(
            return_value=httpx.Response(409, json={"error": {"message": "The requested identifier already exists."}})
        )
        with pytest.raises(ProviderCreateError) as exc_info:
            await provider.create_event(
                "token",
                title="t",
                description="d",
                start=datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc),
                end=datetime(2026, 1, 20, 14, 30, tzinfo=timezone.utc),
                attendee_emails=["ada@example.com"],
                event_id="abc123",
            )
        assert exc_info.value.provider_status == 409
        assert exc_info.value.error_code == ErrorCode.PROVIDER_CREATE_FAILED

    @pytest.mark.asyncio
    @respx.mock
    async def test_create_event_malformed_body(self, provider):
        respx.post(EVENTS_URL).mock(return_value=httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(ProviderCreateError) as exc_info:
            await provider.create_event(
                "token",
                title="t",
                description="d",
                start=datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc),
                end=datetime(2026, 1, 20, 14, 30, tzinfo=timezone.utc),
                attendee_emails=["ada@example.com"],
            )
        assert exc_info.value.error_code == ErrorCode.PROVIDER_CREATE_FAILED
