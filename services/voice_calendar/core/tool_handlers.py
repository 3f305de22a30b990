"""
Tool handlers: execute an Invocation and phrase the outcome for speech.

Every path returns a ``ToolOutcome``; the agent reads ``result`` aloud, so
messages never include provider error bodies, tokens or internal IDs.
"""

from pydantic import ValidationError as PydanticValidationError

from services.common.http_errors import ErrorCode, ServiceAPIException
from services.common.logging_config import get_logger, user_id_var
from services.voice_calendar.core.availability import AvailabilityEngine
from services.voice_calendar.core.booking import BookingOrchestrator
from services.voice_calendar.core.datetime_resolver import (
    format_for_speech,
    resolve,
    resolve_duration,
)
from services.voice_calendar.core.exceptions import (
    InvalidDateFormatError,
    InvalidDurationError,
    InvalidTimeFormatError,
)
from services.voice_calendar.core.settings import Settings
from services.voice_calendar.schemas import (
    Attendee,
    BookMeetingParams,
    CheckAvailabilityParams,
    FunctionName,
    Invocation,
    MeetingDetails,
    ToolOutcome,
)

logger = get_logger(__name__)

MISSING_CHECK_PARAMS = (
    "I need both a date and time to check availability. Could you provide those?"
)
MISSING_BOOKING_PARAMS = (
    "I need the date, time, your name, and email to book the meeting. "
    "Could you provide those?"
)
UNPARSEABLE_DATETIME = (
    "I couldn't quite catch that date and time. Could you say it again, "
    "for example January 20th at 2 PM?"
)
INVALID_DURATION = (
    "The meeting needs to end after it starts. "
    "Could you confirm the start and end times?"
)
CHECK_FAILED = (
    "I'm having trouble checking the calendar right now. Could you try a different time?"
)
BOOKING_NOT_CONNECTED = (
    "I wasn't able to book that time because the calendar isn't connected yet. "
    "Please try again later."
)
BOOKING_FAILED = "I wasn't able to book that time. Please try a different time."
IDENTITY_UNRESOLVED = (
    "I'm unable to access the calendar right now. Please contact support."
)
UNEXPECTED_ERROR = (
    "I apologize, but I encountered an error with the calendar. "
    "Please try again or contact support."
)


class ToolHandlers:
    """Dispatches invocations to the availability and booking flows."""

    def __init__(
        self,
        availability_engine: AvailabilityEngine,
        booking_orchestrator: BookingOrchestrator,
        settings: Settings,
    ):
        self.availability_engine = availability_engine
        self.booking_orchestrator = booking_orchestrator
        self.settings = settings

    async def handle(self, invocation: Invocation) -> ToolOutcome:
        user_id_var.set(invocation.user_id)
        logger.info(
            f"Handling {invocation.function_name.value}",
            shape=invocation.shape.value,
            tool_call_id=invocation.correlation_id,
        )
        try:
            if invocation.function_name == FunctionName.CHECK_AVAILABILITY:
                return await self.check_availability(invocation)
            return await self.book_meeting(invocation)
        except Exception:
            logger.exception(f"Unexpected error handling {invocation.function_name.value}")
            return ToolOutcome(result=UNEXPECTED_ERROR, success=False)

    async def check_availability(self, invocation: Invocation) -> ToolOutcome:
        try:
            params = CheckAvailabilityParams.model_validate(invocation.parameters)
        except PydanticValidationError:
            logger.warning("Unreadable check_calendar_availability arguments")
            return ToolOutcome(result=UNPARSEABLE_DATETIME, success=False)

        if not params.date or not params.start_time:
            return ToolOutcome(result=MISSING_CHECK_PARAMS, success=False)

        timezone_name = params.timezone or "UTC"
        try:
            start = resolve(params.date, params.start_time, timezone_name)
            duration_minutes = resolve_duration(
                params.start_time,
                params.end_time,
                params.duration_minutes,
                default=self.settings.DEFAULT_MEETING_DURATION_MINUTES,
            )
        except (InvalidDateFormatError, InvalidTimeFormatError) as e:
            logger.info(f"Could not resolve requested time: {e.message}")
            return ToolOutcome(result=UNPARSEABLE_DATETIME, success=False)
        except InvalidDurationError as e:
            logger.info(f"Invalid meeting duration: {e.message}")
            return ToolOutcome(result=INVALID_DURATION, success=False)

        spoken_time = format_for_speech(start, timezone_name)
        try:
            availability = await self.availability_engine.check_availability(
                invocation.user_id, start, duration_minutes
            )
        except ServiceAPIException as e:
            logger.error(
                f"Availability check failed: {e.message}",
                error_code=e.error_code.value if e.error_code else None,
            )
            return ToolOutcome(result=CHECK_FAILED, success=False)

        if availability.available:
            return ToolOutcome(
                result=f"Great! {spoken_time} is available. Would you like to book this time?",
                success=True,
            )
        return ToolOutcome(
            result=(
                f"Unfortunately, {spoken_time} is not available. "
                f"There's already {availability.conflict_titles} scheduled. "
                "Could you suggest another time that works for you?"
            ),
            success=False,
        )

    async def book_meeting(self, invocation: Invocation) -> ToolOutcome:
        try:
            params = BookMeetingParams.model_validate(invocation.parameters)
        except PydanticValidationError:
            logger.warning("Unreadable book_calendar_meeting arguments")
            return ToolOutcome(result=UNPARSEABLE_DATETIME, success=False)

        if not (
            params.date
            and params.start_time
            and params.attendee_name
            and params.attendee_email
        ):
            return ToolOutcome(result=MISSING_BOOKING_PARAMS, success=False)

        timezone_name = params.timezone or "UTC"
        try:
            start = resolve(params.date, params.start_time, timezone_name)
            duration_minutes = resolve_duration(
                params.start_time,
                params.end_time,
                params.duration_minutes,
                default=self.settings.DEFAULT_MEETING_DURATION_MINUTES,
            )
        except (InvalidDateFormatError, InvalidTimeFormatError) as e:
            logger.info(f"Could not resolve requested time: {e.message}")
            return ToolOutcome(result=UNPARSEABLE_DATETIME, success=False)
        except InvalidDurationError as e:
            logger.info(f"Invalid meeting duration: {e.message}")
            return ToolOutcome(result=INVALID_DURATION, success=False)

        idempotency_key = (
            invocation.correlation_id
            if self.settings.BOOKING_IDEMPOTENCY_ENABLED
            else None
        )
        outcome = await self.booking_orchestrator.book_meeting(
            invocation.user_id,
            Attendee(name=params.attendee_name, email=params.attendee_email),
            MeetingDetails(
                start=start,
                duration_minutes=duration_minutes,
                title=params.meeting_title,
                description=params.meeting_description,
                timezone=timezone_name,
            ),
            idempotency_key=idempotency_key,
        )

        spoken_time = format_for_speech(start, timezone_name)
        if outcome.success:
            return ToolOutcome(
                result=(
                    f"Perfect! I've booked {spoken_time} for you. You'll receive a "
                    f"calendar invite at {params.attendee_email} shortly."
                ),
                success=True,
            )
        if outcome.error_code == ErrorCode.SLOT_UNAVAILABLE and outcome.error:
            return ToolOutcome(
                result=f"I wasn't able to book that time. {outcome.error}",
                success=False,
            )
        if outcome.error_code == ErrorCode.CALENDAR_NOT_CONNECTED:
            return ToolOutcome(result=BOOKING_NOT_CONNECTED, success=False)
        return ToolOutcome(result=BOOKING_FAILED, success=False)
