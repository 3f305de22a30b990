"""
Date and time resolution for spoken scheduling requests.

The voice agent hands over a date string and a clock time as separate
arguments. This module turns them into a UTC instant and back into a phrase
the agent can read aloud. All functions are pure.

Accepted dates:
- ``YYYY-MM-DD``
- ``DD/MM/YYYY`` when the first component is greater than 12
- ``MM/DD/YYYY`` otherwise. ``03/04/2026`` is read as March 4th; a slash date
  whose first two components are both <= 12 is a best-effort guess.

Accepted times:
- 12-hour clock with an ``am``/``pm`` marker: ``2 PM``, ``2:30pm``, ``12:15 AM``,
  ``2 p.m.``, ``2pm UTC`` (text after the marker is ignored)
- 24-hour clock: ``14:00``, ``09:30:00`` (seconds are ignored)

Timezone hints are NOT applied to the wall-clock components. A request for
"14:00" with hint "America/New_York" resolves to 14:00 UTC; the hint is only
used to format the instant for speech. This keeps the resolved instant
consistent with what the rest of the booking flow has always stored.
"""

import re
from datetime import datetime, timezone
from typing import Any, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from services.common.logging_config import get_logger
from services.voice_calendar.core.exceptions import (
    InvalidDateFormatError,
    InvalidDurationError,
    InvalidTimeFormatError,
)

logger = get_logger(__name__)

DEFAULT_DURATION_MINUTES = 30

# "am"/"pm" anywhere in the time, once dots are removed ("2 p.m." -> "2 pm")
_MERIDIEM_RE = re.compile(r"(?<![a-z])(am|pm)(?![a-z])")


def _to_int(component: str) -> int:
    component = component.strip()
    if not component.isdigit():
        raise ValueError(f"not a number: {component!r}")
    return int(component)


def parse_date(date_str: str) -> Tuple[int, int, int]:
    """Parse a date string into ``(year, month, day)``."""
    if not date_str or not isinstance(date_str, str):
        raise InvalidDateFormatError(date_str, "empty")

    value = date_str.strip()
    try:
        if "-" in value:
            parts = [_to_int(p) for p in value.split("-")]
            if len(parts) != 3:
                raise ValueError("expected YYYY-MM-DD")
            year, month, day = parts
        elif "/" in value:
            parts = [_to_int(p) for p in value.split("/")]
            if len(parts) != 3:
                raise ValueError("expected three components")
            if parts[0] > 12:
                day, month, year = parts
            else:
                month, day, year = parts
        else:
            raise ValueError("expected '-' or '/' separators")

        # Rejects impossible dates such as 2026-02-30
        datetime(year, month, day)
    except ValueError as e:
        raise InvalidDateFormatError(date_str, str(e)) from e

    return year, month, day


def parse_time(time_str: str) -> Tuple[int, int]:
    """Parse a clock time into ``(hour, minute)`` on the 24-hour clock."""
    if not time_str or not isinstance(time_str, str):
        raise InvalidTimeFormatError(time_str, "empty")

    value = time_str.strip().lower().replace(".", "")
    marker = _MERIDIEM_RE.search(value)
    try:
        if marker:
            is_pm = marker.group(1) == "pm"
            clock = value[: marker.start()].strip()
            pieces = clock.split(":")
            if len(pieces) > 2:
                raise ValueError("expected HH or HH:MM before the am/pm marker")
            hour = _to_int(pieces[0])
            minute = _to_int(pieces[1]) if len(pieces) == 2 else 0
            if not 1 <= hour <= 12:
                raise ValueError("hour must be between 1 and 12")
            if is_pm and hour != 12:
                hour += 12
            elif not is_pm and hour == 12:
                hour = 0
        else:
            pieces = value.split(":")
            if len(pieces) not in (2, 3):
                raise ValueError("expected HH:MM")
            hour = _to_int(pieces[0])
            minute = _to_int(pieces[1])
            if len(pieces) == 3:
                _to_int(pieces[2])
            if not 0 <= hour <= 23:
                raise ValueError("hour must be between 0 and 23")

        if not 0 <= minute <= 59:
            raise ValueError("minute must be between 0 and 59")
    except ValueError as e:
        raise InvalidTimeFormatError(time_str, str(e)) from e

    return hour, minute


def resolve(
    date_str: str, time_str: str, timezone_hint: Optional[str] = None
) -> datetime:
    """
    Resolve a spoken date and time into a timezone-aware UTC datetime.

    Args:
        date_str: Date in one of the accepted layouts
        time_str: 12-hour or 24-hour clock time
        timezone_hint: Caller's timezone; accepted for symmetry with
            ``format_for_speech`` but never used to shift the result

    Raises:
        InvalidDateFormatError: If the date cannot be parsed
        InvalidTimeFormatError: If the time cannot be parsed
    """
    year, month, day = parse_date(date_str)
    hour, minute = parse_time(time_str)
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def duration(start_str: str, end_str: str) -> int:
    """Minutes between two same-day clock times; must be positive."""
    start_hour, start_minute = parse_time(start_str)
    end_hour, end_minute = parse_time(end_str)
    minutes = (end_hour * 60 + end_minute) - (start_hour * 60 + start_minute)
    if minutes <= 0:
        raise InvalidDurationError(
            f"End time {end_str!r} is not after start time {start_str!r}",
            value=minutes,
        )
    return minutes


def resolve_duration(
    start_str: str,
    end_str: Optional[str] = None,
    duration_minutes: Any = None,
    default: int = DEFAULT_DURATION_MINUTES,
) -> int:
    """
    Pick the meeting length: an explicit end time wins over an explicit
    duration, which wins over ``default``.
    """
    if end_str:
        return duration(start_str, end_str)

    if duration_minutes is None or duration_minutes == "":
        return default

    try:
        minutes = int(str(duration_minutes).strip())
    except ValueError as e:
        raise InvalidDurationError(
            f"Duration {duration_minutes!r} is not a whole number of minutes",
            value=duration_minutes,
        ) from e
    if minutes <= 0:
        raise InvalidDurationError("Duration must be positive", value=minutes)
    return minutes


def _zone(timezone_name: Optional[str]) -> Any:
    if not timezone_name or timezone_name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {timezone_name!r}, formatting in UTC")
        return timezone.utc


def format_for_speech(instant: datetime, timezone_name: Optional[str] = "UTC") -> str:
    """
    Render an instant the way the agent reads it aloud, e.g.
    ``Tuesday, January 20, 2026 at 02:00 PM``.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    local = instant.astimezone(_zone(timezone_name))
    return f"{local:%A}, {local:%B} {local.day}, {local.year} at {local:%I:%M %p}"
