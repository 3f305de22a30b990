from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)

from services.common.http_errors import ErrorCode


class FunctionName(str, Enum):
    CHECK_AVAILABILITY = "check_calendar_availability"
    BOOK_MEETING = "book_calendar_meeting"


class InvocationShape(str, Enum):
    """Webhook body layouts, in the order they are tried."""

    TOOL_CALL_LIST = "tool_call_list"  # message.toolCallList[].function.{name,arguments}
    TOOL_CALLS = "tool_calls"  # message.toolCalls[].{name,arguments}
    FUNCTION_CALL = "function_call"  # message.functionCall.{name,parameters}

    @property
    def is_list(self) -> bool:
        return self is not InvocationShape.FUNCTION_CALL


# Calendar Models
class CalendarEvent(BaseModel):
    """A busy block on the user's calendar, normalized to UTC."""

    id: str
    title: str = "Busy"
    start: datetime
    end: datetime
    all_day: bool = False


class CreatedEvent(BaseModel):
    event_id: str
    event_url: Optional[str] = None


class ProposedSlot(BaseModel):
    start: datetime
    duration_minutes: int = Field(30, gt=0)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


class AvailabilityResult(BaseModel):
    available: bool
    conflicts: List[CalendarEvent] = []

    @property
    def conflict_titles(self) -> str:
        return ", ".join(event.title for event in self.conflicts)


class Attendee(BaseModel):
    name: str
    email: str


class MeetingDetails(BaseModel):
    start: datetime
    duration_minutes: int = Field(30, gt=0)
    title: Optional[str] = None
    description: Optional[str] = None
    timezone: str = "UTC"  # display only, never used to shift ``start``

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)


class BookingOutcome(BaseModel):
    success: bool
    calendar_event_id: Optional[str] = None
    event_url: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None


# Webhook Models
class Invocation(BaseModel):
    """A single tool call extracted from a webhook body."""

    function_name: FunctionName
    parameters: Dict[str, Any] = {}
    correlation_id: Optional[str] = None
    user_id: str
    shape: InvocationShape


class CheckAvailabilityParams(BaseModel):
    """Arguments of ``check_calendar_availability``.

    Both parameter vocabularies used by the assistant configurations are
    accepted, e.g. ``startTime`` or ``time``.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: Optional[str] = None
    start_time: Optional[str] = Field(
        None, validation_alias=AliasChoices("startTime", "time", "start_time")
    )
    end_time: Optional[str] = Field(
        None, validation_alias=AliasChoices("endTime", "end_time")
    )
    timezone: Optional[str] = None
    duration_minutes: Optional[Union[int, str]] = Field(
        None,
        validation_alias=AliasChoices("duration_minutes", "durationMinutes", "duration"),
    )

    @field_validator("date", "start_time", "end_time", "timezone", mode="before")
    @classmethod
    def coerce_to_stripped_string(cls, v: Any) -> Optional[str]:
        """Numbers become strings; blank strings count as missing."""
        if v is None:
            return None
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            return v.strip() or None
        return v


class BookMeetingParams(CheckAvailabilityParams):
    attendee_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("attendeeName", "leadName", "attendee_name")
    )
    attendee_email: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("attendeeEmail", "leadEmail", "attendee_email"),
    )
    meeting_title: Optional[str] = Field(
        None, validation_alias=AliasChoices("meetingTitle", "meeting_title")
    )
    meeting_description: Optional[str] = Field(
        None,
        validation_alias=AliasChoices(
            "meetingDescription", "meetingNotes", "meeting_description"
        ),
    )

    @field_validator(
        "attendee_name",
        "attendee_email",
        "meeting_title",
        "meeting_description",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v: Any) -> Optional[str]:
        if isinstance(v, str):
            return v.strip() or None
        return v


class ToolOutcome(BaseModel):
    """Spoken result of one tool call."""

    result: str
    success: bool


class ToolCallResult(BaseModel):
    toolCallId: Optional[str] = None
    result: str
    success: bool


class WebhookResponse(BaseModel):
    results: List[ToolCallResult]
