"""
Shared-secret verification for voice-platform webhooks.

The platform sends the secret configured on the assistant's server URL in the
``x-vapi-secret`` header. Verification is skipped when no secret is
configured for this service.
"""

import hmac
from typing import Optional

from fastapi import Depends, Request

from services.common.http_errors import AuthError, ErrorCode
from services.common.logging_config import get_logger
from services.voice_calendar.core.settings import Settings, get_settings

logger = get_logger(__name__)

SECRET_HEADER = "x-vapi-secret"


def verify_webhook_secret(expected: Optional[str], provided: Optional[str]) -> None:
    """
    Compare the provided webhook secret with the configured one.

    Raises:
        AuthError: If a secret is configured and the header is missing or wrong
    """
    if not expected:
        logger.warning("Webhook secret not configured, skipping verification")
        return

    if not provided:
        raise AuthError(
            "Missing webhook secret header",
            code=ErrorCode.WEBHOOK_SECRET_INVALID,
            details={"header": SECRET_HEADER},
        )

    if not hmac.compare_digest(expected.encode(), provided.encode()):
        raise AuthError(
            "Invalid webhook secret",
            code=ErrorCode.WEBHOOK_SECRET_INVALID,
            details={"header": SECRET_HEADER},
        )

    logger.debug("Webhook secret verified")


async def require_webhook_secret(
    request: Request, settings: Settings = Depends(get_settings)
) -> None:
    """FastAPI dependency enforcing ``verify_webhook_secret``."""
    verify_webhook_secret(settings.vapi_webhook_secret, request.headers.get(SECRET_HEADER))
