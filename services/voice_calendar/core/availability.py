"""
Availability checks against a user's primary calendar.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from services.common.logging_config import get_logger
from services.voice_calendar.core.calendar_provider import CalendarProvider
from services.voice_calendar.core.exceptions import (
    CalendarNotConnectedError,
    InvalidDurationError,
)
from services.voice_calendar.core.token_manager import TokenManager
from services.voice_calendar.schemas import (
    AvailabilityResult,
    CalendarEvent,
    ProposedSlot,
)

logger = get_logger(__name__)


def overlaps(event: CalendarEvent, start: datetime, end: datetime) -> bool:
    """Half-open interval overlap; an event ending exactly at ``start`` is free."""
    return event.start < end and event.end > start


def find_conflicts(
    events: Iterable[CalendarEvent],
    start: datetime,
    end: datetime,
    exclude_event_id: Optional[str] = None,
) -> List[CalendarEvent]:
    return [
        event
        for event in events
        if overlaps(event, start, end)
        and (exclude_event_id is None or event.id != exclude_event_id)
    ]


class AvailabilityEngine:
    """
    Decides whether a proposed slot is free.

    The provider is queried over a window padded on both sides so events that
    start before or run past the slot are returned; the overlap test is then
    applied to the unpadded slot.
    """

    def __init__(
        self,
        token_manager: TokenManager,
        provider: CalendarProvider,
        padding: timedelta = timedelta(hours=1),
    ):
        self.token_manager = token_manager
        self.provider = provider
        self.padding = padding

    async def check_availability(
        self,
        user_id: str,
        proposed_start: datetime,
        duration_minutes: int,
        exclude_event_id: Optional[str] = None,
    ) -> AvailabilityResult:
        """
        Report whether the slot is free and which events overlap it.

        ``exclude_event_id`` names an event that never counts as a conflict,
        such as the event a retried booking request already created.
        """
        if not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise InvalidDurationError("Duration must be positive", value=duration_minutes)

        slot = ProposedSlot(start=proposed_start, duration_minutes=duration_minutes)

        try:
            access_token = await self.token_manager.get_valid_access_token(user_id)
        except CalendarNotConnectedError:
            # Without a connected calendar there is nothing to conflict with
            logger.warning(
                f"Calendar not connected for user {user_id}, reporting slot as available"
            )
            return AvailabilityResult(available=True, conflicts=[])

        events = await self.provider.list_events(
            access_token,
            slot.start - self.padding,
            slot.end + self.padding,
        )
        conflicts = find_conflicts(events, slot.start, slot.end, exclude_event_id)

        logger.info(
            "Availability checked",
            user_id=user_id,
            proposed_start=proposed_start.isoformat(),
            duration_minutes=duration_minutes,
            events_in_window=len(events),
            conflicts=len(conflicts),
        )
        return AvailabilityResult(available=not conflicts, conflicts=conflicts)
