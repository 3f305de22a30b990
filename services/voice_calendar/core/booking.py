"""
Booking orchestration: check the slot, obtain a token, create the event.

The availability check and the event creation are two separate provider
calls, so a meeting booked by someone else in between is not detected; the
calendar may end up double-booked in that window.
"""

from hashlib import sha256
from typing import Optional

from services.common.http_errors import ErrorCode, ServiceAPIException
from services.common.logging_config import get_logger
from services.voice_calendar.core.availability import AvailabilityEngine
from services.voice_calendar.core.calendar_provider import CalendarProvider
from services.voice_calendar.core.exceptions import (
    CalendarNotConnectedError,
    ProviderCreateError,
)
from services.voice_calendar.core.token_manager import TokenManager
from services.voice_calendar.schemas import Attendee, BookingOutcome, MeetingDetails

logger = get_logger(__name__)

DEFAULT_DESCRIPTION = "Scheduled via AI call"


def derive_event_id(user_id: str, idempotency_key: str) -> str:
    """
    Deterministic provider event ID for a booking attempt.

    Hex digits are a subset of the base32hex alphabet Google requires for
    client-supplied event IDs.
    """
    return sha256(f"{user_id}:{idempotency_key}".encode()).hexdigest()[:32]


class BookingOrchestrator:
    def __init__(
        self,
        availability_engine: AvailabilityEngine,
        token_manager: TokenManager,
        provider: CalendarProvider,
    ):
        self.availability_engine = availability_engine
        self.token_manager = token_manager
        self.provider = provider

    async def book_meeting(
        self,
        user_id: str,
        attendee: Attendee,
        details: MeetingDetails,
        idempotency_key: Optional[str] = None,
    ) -> BookingOutcome:
        """
        Book a meeting on the user's primary calendar.

        Domain failures are reported through ``BookingOutcome`` rather than
        raised. Unlike the availability check, a calendar that is not
        connected makes the booking fail.

        Args:
            user_id: Owner of the calendar
            attendee: Person to invite
            details: Start, resolved duration and optional title/description
            idempotency_key: Stable ID of the booking request (e.g. the tool
                call ID); when given, retries reuse the same provider event ID
        """
        title = details.title or f"Meeting with {attendee.name}"
        description = details.description or DEFAULT_DESCRIPTION
        event_id = derive_event_id(user_id, idempotency_key) if idempotency_key else None

        try:
            availability = await self.availability_engine.check_availability(
                user_id,
                details.start,
                details.duration_minutes,
                exclude_event_id=event_id,
            )
            if not availability.available:
                logger.info(
                    "Requested slot is taken",
                    user_id=user_id,
                    start=details.start.isoformat(),
                    conflicts=len(availability.conflicts),
                )
                return BookingOutcome(
                    success=False,
                    error=f"Time slot not available. Conflicts with: {availability.conflict_titles}",
                    error_code=ErrorCode.SLOT_UNAVAILABLE,
                )

            access_token = await self.token_manager.get_valid_access_token(user_id)

            try:
                created = await self.provider.create_event(
                    access_token,
                    title=title,
                    description=description,
                    start=details.start,
                    end=details.end,
                    attendee_emails=[attendee.email],
                    event_id=event_id,
                )
            except ProviderCreateError as e:
                if event_id and e.provider_status == 409:
                    logger.info(
                        "Event already exists for this booking request, treating as booked",
                        user_id=user_id,
                        event_id=event_id,
                    )
                    return BookingOutcome(success=True, calendar_event_id=event_id)
                raise

        except CalendarNotConnectedError as e:
            logger.warning(f"Cannot book for user {user_id}: calendar not connected")
            return BookingOutcome(success=False, error=e.message, error_code=e.error_code)
        except ServiceAPIException as e:
            logger.error(
                f"Booking failed for user {user_id}: {e.message}",
                error_code=e.error_code.value if e.error_code else None,
            )
            return BookingOutcome(success=False, error=e.message, error_code=e.error_code)

        logger.info(
            "Meeting booked",
            user_id=user_id,
            calendar_event_id=created.event_id,
            start=details.start.isoformat(),
            duration_minutes=details.duration_minutes,
        )
        return BookingOutcome(
            success=True,
            calendar_event_id=created.event_id,
            event_url=created.event_url,
        )
