"""
Normalization of voice-platform webhook bodies into a single Invocation.

Three body layouts are in use depending on the assistant's configuration:

1. ``message.toolCallList``: ``[{id, function: {name, arguments}}]`` where
   ``arguments`` is usually a JSON string
2. ``message.toolCalls``: ``[{id, name, arguments}]``
3. ``message.functionCall``: ``{name, parameters}`` (legacy function calling)

They are tried in that order. Only the first tool call of a list is handled.
"""

import json
from typing import Any, Dict, Iterable, Optional, Tuple

from services.common.logging_config import get_logger
from services.voice_calendar.core.exceptions import (
    MalformedArgumentsError,
    MissingInvocationError,
    MissingUserIdentityError,
    UnknownFunctionError,
)
from services.voice_calendar.schemas import FunctionName, Invocation, InvocationShape

logger = get_logger(__name__)

# Where the user id may live, most specific first
USER_ID_PATHS: Tuple[Tuple[str, ...], ...] = (
    ("call", "metadata", "user_id"),
    ("call", "assistantOverrides", "variableValues", "user_id"),
    ("message", "call", "metadata", "user_id"),
    ("message", "call", "assistantOverrides", "variableValues", "user_id"),
)


def _dig(data: Any, path: Iterable[str]) -> Any:
    for key in path:
        if not isinstance(data, dict):
            return None
        data = data.get(key)
    return data


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _decode_arguments(arguments: Any) -> Dict[str, Any]:
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, dict):
        return arguments
    if isinstance(arguments, str):
        try:
            decoded = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise MalformedArgumentsError() from e
        if isinstance(decoded, dict):
            return decoded
    raise MalformedArgumentsError()


def _first_item(message: Dict[str, Any], key: str) -> Optional[Dict[str, Any]]:
    items = message.get(key)
    if not isinstance(items, list) or not items:
        return None
    if len(items) > 1:
        logger.warning(f"Received {len(items)} tool calls in {key}; handling only the first")
    first = items[0]
    return first if isinstance(first, dict) else {}


def extract_tool_call(
    body: Dict[str, Any],
) -> Tuple[InvocationShape, str, Dict[str, Any], Optional[str]]:
    """
    Find the tool call in a webhook body.

    Returns:
        ``(shape, function_name, parameters, correlation_id)``

    Raises:
        MissingInvocationError: No known layout is present
        MalformedArgumentsError: Arguments are not a JSON object
    """
    message = _as_dict(body.get("message"))

    tool_call = _first_item(message, "toolCallList")
    if tool_call is not None:
        function = _as_dict(tool_call.get("function"))
        name = function.get("name")
        if not name:
            raise MissingInvocationError()
        return (
            InvocationShape.TOOL_CALL_LIST,
            str(name),
            _decode_arguments(function.get("arguments")),
            tool_call.get("id"),
        )

    tool_call = _first_item(message, "toolCalls")
    if tool_call is not None:
        # Some payloads nest name/arguments under "function" here as well
        function = _as_dict(tool_call.get("function")) or tool_call
        name = function.get("name")
        if not name:
            raise MissingInvocationError()
        return (
            InvocationShape.TOOL_CALLS,
            str(name),
            _decode_arguments(function.get("arguments")),
            tool_call.get("id"),
        )

    function_call = message.get("functionCall")
    if isinstance(function_call, dict) and function_call.get("name"):
        return (
            InvocationShape.FUNCTION_CALL,
            str(function_call["name"]),
            _decode_arguments(function_call.get("parameters")),
            None,
        )

    raise MissingInvocationError()


def resolve_user_id(
    body: Dict[str, Any],
    test_mode: bool = False,
    test_user_id: Optional[str] = None,
) -> str:
    """
    Find the user the call belongs to.

    The test identity is used only when test mode is explicitly enabled and
    a test user is configured.

    Raises:
        MissingUserIdentityError: No identity in the body and no test fallback
    """
    for path in USER_ID_PATHS:
        value = _dig(body, path)
        if value is None or isinstance(value, (dict, list, bool)):
            continue
        user_id = str(value).strip()
        if user_id:
            return user_id

    if test_mode and test_user_id:
        logger.warning(f"No user_id in call metadata, using test user {test_user_id}")
        return test_user_id

    raise MissingUserIdentityError()


def normalize_request(
    body: Any,
    test_mode: bool = False,
    test_user_id: Optional[str] = None,
) -> Invocation:
    """
    Turn a webhook body into an Invocation.

    Checks run in a fixed order: tool call presence, user identity, then the
    function name, so an unknown function is reported only for attributable
    calls.
    """
    if not isinstance(body, dict):
        raise MissingInvocationError()

    shape, name, parameters, correlation_id = extract_tool_call(body)
    try:
        user_id = resolve_user_id(body, test_mode=test_mode, test_user_id=test_user_id)
    except MissingUserIdentityError as e:
        raise MissingUserIdentityError(
            e.message,
            shape=shape,
            correlation_id=str(correlation_id) if correlation_id is not None else None,
        ) from e

    try:
        function_name = FunctionName(name)
    except ValueError as e:
        raise UnknownFunctionError(name) from e

    return Invocation(
        function_name=function_name,
        parameters=parameters,
        correlation_id=str(correlation_id) if correlation_id is not None else None,
        user_id=user_id,
        shape=shape,
    )
