"""
Voice-platform webhook endpoint for calendar tools.

The platform posts one tool invocation per request and reads the reply back
to the caller. Replies mirror the layout of the request: tool-call lists get a
``results`` array keyed by ``toolCallId``; legacy function calls get a bare
``{result, success}`` object.
"""

import json
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request

from services.common.logging_config import get_logger
from services.voice_calendar.core.dependencies import get_tool_handlers
from services.voice_calendar.core.exceptions import (
    MissingInvocationError,
    MissingUserIdentityError,
)
from services.voice_calendar.core.request_normalizer import normalize_request
from services.voice_calendar.core.settings import Settings, get_settings
from services.voice_calendar.core.tool_handlers import IDENTITY_UNRESOLVED, ToolHandlers
from services.voice_calendar.core.webhook_auth import require_webhook_secret
from services.voice_calendar.schemas import (
    InvocationShape,
    ToolCallResult,
    ToolOutcome,
    WebhookResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/vapi", tags=["vapi"])


def render_outcome(
    shape: Optional[InvocationShape],
    correlation_id: Optional[str],
    outcome: ToolOutcome,
) -> Dict[str, Any]:
    """Shape a tool outcome the way the platform expects for ``shape``."""
    if shape is None or shape.is_list:
        return WebhookResponse(
            results=[
                ToolCallResult(
                    toolCallId=correlation_id,
                    result=outcome.result,
                    success=outcome.success,
                )
            ]
        ).model_dump()
    return outcome.model_dump()


async def _read_json(request: Request) -> Any:
    body = await request.body()
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise MissingInvocationError("Request body is not valid JSON") from e


@router.post("/calendar", dependencies=[Depends(require_webhook_secret)])
async def calendar_webhook(
    request: Request,
    tool_handlers: ToolHandlers = Depends(get_tool_handlers),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    """
    Handle ``check_calendar_availability`` and ``book_calendar_meeting``.

    Malformed invocations and unknown functions are rejected with HTTP 400.
    Everything else, including a call that cannot be attributed to a user,
    is answered with HTTP 200 and a message for the agent to speak.
    """
    body = await _read_json(request)

    try:
        invocation = normalize_request(
            body,
            test_mode=settings.TEST_MODE,
            test_user_id=settings.TEST_USER_ID,
        )
    except MissingUserIdentityError as e:
        logger.error("Webhook call has no user identity", tool_call_id=e.correlation_id)
        return render_outcome(
            e.shape,
            e.correlation_id,
            ToolOutcome(result=IDENTITY_UNRESOLVED, success=False),
        )

    outcome = await tool_handlers.handle(invocation)
    logger.info(
        f"{invocation.function_name.value} completed",
        success=outcome.success,
        tool_call_id=invocation.correlation_id,
    )
    return render_outcome(invocation.shape, invocation.correlation_id, outcome)
