from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from services.common.http_errors import ErrorCode
from services.voice_calendar.core.clients.base import BaseAPIClient, load_json_error


def to_rfc3339(value: datetime) -> str:
    """Format a timezone-aware datetime the way the Calendar API expects."""
    return value.isoformat().replace("+00:00", "Z")


class GoogleCalendarAPIClient(BaseAPIClient):
    """
    Google Calendar API client.

    Thin wrapper over the v3 events endpoints; callers get the decoded JSON
    bodies and handle normalization themselves.
    """

    provider_name = "google"

    def __init__(
        self,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        base_url: str = "https://www.googleapis.com",
        timeout_seconds: float = 30.0,
    ):
        super().__init__(access_token, http_client=http_client, timeout_seconds=timeout_seconds)
        self.base_url = base_url.rstrip("/")

    def _get_default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "VoiceCalendarService/1.0",
        }

    def _get_base_url(self) -> str:
        return self.base_url

    def _parse_error(self, response_text: str, status_code: int) -> tuple[str, ErrorCode]:
        """
        Parse Google API error responses into a message and error code.

        Args:
            response_text: Raw response body from Google API
            status_code: HTTP status code
        """
        reason, message = load_json_error(response_text)
        detail = message or reason or f"HTTP {status_code}"

        if status_code == 401:
            if "expired" in detail.lower():
                return "Google token has expired", ErrorCode.GOOGLE_TOKEN_EXPIRED
            return "Google authentication failed", ErrorCode.GOOGLE_AUTH_FAILED
        if status_code == 403:
            if "quotaExceeded" in reason or "rateLimitExceeded" in reason:
                return "Google API quota exceeded", ErrorCode.GOOGLE_QUOTA_EXCEEDED
            if "insufficientPermissions" in reason or "forbidden" in detail.lower():
                return (
                    "Insufficient Google Calendar permissions",
                    ErrorCode.GOOGLE_INSUFFICIENT_PERMISSIONS,
                )
            return f"Google access denied: {detail}", ErrorCode.GOOGLE_ACCESS_DENIED
        if status_code == 409:
            return f"Google resource conflict: {detail}", ErrorCode.GOOGLE_CONFLICT
        if status_code == 429:
            return "Google API rate limit exceeded", ErrorCode.GOOGLE_RATE_LIMITED
        if status_code >= 500:
            return f"Google service error: {detail}", ErrorCode.GOOGLE_SERVICE_ERROR
        return f"Google API error: {detail}", ErrorCode.GOOGLE_API_ERROR

    async def get_events(
        self,
        calendar_id: str = "primary",
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        max_results: int = 250,
        page_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Get calendar events, recurring events expanded into instances.

        Args:
            calendar_id: Calendar ID (default: primary)
            time_min: Lower bound (exclusive) for an event's end time
            time_max: Upper bound (exclusive) for an event's start time
            max_results: Maximum number of events per page
            page_token: Token for pagination
        """
        params: Dict[str, Any] = {
            "maxResults": max_results,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_min:
            params["timeMin"] = to_rfc3339(time_min)
        if time_max:
            params["timeMax"] = to_rfc3339(time_max)
        if page_token:
            params["pageToken"] = page_token

        response = await self.get(f"/calendar/v3/calendars/{calendar_id}/events", params=params)
        return response.json()

    async def create_event(
        self,
        event_data: Dict[str, Any],
        calendar_id: str = "primary",
        send_updates: str = "all",
    ) -> Dict[str, Any]:
        """
        Create a calendar event and, by default, email invitations to attendees.

        Args:
            event_data: Event body in Google Calendar API format
            calendar_id: Calendar ID (default: primary)
            send_updates: Guests to notify (all, externalOnly, none)
        """
        response = await self.post(
            f"/calendar/v3/calendars/{calendar_id}/events",
            json_data=event_data,
            params={"sendUpdates": send_updates},
        )
        return response.json()
