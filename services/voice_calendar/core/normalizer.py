"""
Normalization of Google Calendar API payloads into CalendarEvent models.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

from services.common.logging_config import get_logger
from services.voice_calendar.schemas import CalendarEvent

logger = get_logger(__name__)

_SAFE_EVENT_KEYS = ("id", "status", "start", "end", "eventType", "transparency")


def _safe_log_raw_data(raw_data: Dict[str, Any]) -> str:
    """Describe a raw event for logs without titles, descriptions or attendees."""
    return str({key: raw_data.get(key) for key in _SAFE_EVENT_KEYS if key in raw_data})


def _parse_google_datetime(dt_data: Any) -> tuple[datetime, bool]:
    """
    Parse a Google Calendar ``start``/``end`` object.

    Timed events carry ``dateTime`` (RFC 3339 with offset); all-day events
    carry ``date`` and are anchored at UTC midnight.

    Raises:
        ValueError: If neither field holds a parseable value
    """
    if not isinstance(dt_data, dict):
        raise ValueError("event time is not an object")

    datetime_str = dt_data.get("dateTime")
    if datetime_str:
        parsed = datetime.fromisoformat(str(datetime_str).replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc), False

    date_str = dt_data.get("date")
    if date_str:
        parsed = datetime.fromisoformat(str(date_str))
        return parsed.replace(tzinfo=timezone.utc), True

    raise ValueError("event time has neither dateTime nor date")


def normalize_google_calendar_event(raw_data: Dict[str, Any]) -> CalendarEvent:
    """
    Normalize a Google Calendar event into a CalendarEvent.

    Events without a summary (private or free/busy-only calendars) are titled
    "Busy".

    Raises:
        ValueError: If the event has no usable start or end
    """
    try:
        start, all_day = _parse_google_datetime(raw_data.get("start"))
        end, _ = _parse_google_datetime(raw_data.get("end"))
        return CalendarEvent(
            id=str(raw_data.get("id", "")),
            title=raw_data.get("summary") or "Busy",
            start=start,
            end=end,
            all_day=all_day,
        )
    except Exception as e:
        logger.error(
            f"Failed to normalize Google Calendar event: {e}",
            raw_event=_safe_log_raw_data(raw_data),
        )
        raise ValueError(f"Malformed Google Calendar event: {e}") from e


def normalize_google_event_list(payload: Any) -> List[CalendarEvent]:
    """Normalize an events list response, preserving the provider's order."""
    if not isinstance(payload, dict):
        raise ValueError("events response is not an object")
    items = payload.get("items", [])
    if not isinstance(items, list):
        raise ValueError("events response 'items' is not a list")
    return [
        normalize_google_calendar_event(item)
        for item in items
        if isinstance(item, dict) and item.get("status") != "cancelled"
    ]
