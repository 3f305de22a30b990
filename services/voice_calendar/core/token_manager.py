"""
Token lifecycle management for calendar integrations.

Hands out access tokens that are good for at least the refresh threshold
(5 minutes by default), refreshing them against the OAuth token endpoint when
they are close to expiry. Refreshes are serialized per (user, provider)
inside this process; a caller that waited on the lock re-reads the record and
reuses the token the previous holder stored.
"""

import asyncio
import weakref
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional, Tuple

import httpx

from services.common.logging_config import get_logger
from services.voice_calendar.core.exceptions import (
    CalendarNotConnectedError,
    CalendarReauthRequiredError,
    TokenRefreshError,
)
from services.voice_calendar.core.integration_store import IntegrationStore
from services.voice_calendar.core.settings import Settings
from services.voice_calendar.models import Integration

logger = get_logger(__name__)


class TokenState(str, Enum):
    MISSING = "missing"
    VALID = "valid"
    EXPIRING = "expiring"
    UNREFRESHABLE = "unrefreshable"


def classify_integration(
    integration: Optional[Integration],
    now: datetime,
    threshold: timedelta = timedelta(minutes=5),
) -> TokenState:
    """Decide what a stored integration needs before its token can be used."""
    if integration is None:
        return TokenState.MISSING

    expires_at = integration.expires_at
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)

    if integration.access_token and expires_at is not None:
        if expires_at - now > threshold:
            return TokenState.VALID

    # No access token, unknown expiry, or inside the threshold
    if integration.refresh_token:
        return TokenState.EXPIRING
    return TokenState.UNREFRESHABLE


class TokenManager:
    """
    Returns usable access tokens for a user's calendar integration.

    Args:
        store: Integration store holding the OAuth credentials
        http_client: Shared client used to call the token endpoint
        settings: Service settings (client credentials, endpoint, threshold)
    """

    def __init__(
        self,
        store: IntegrationStore,
        http_client: httpx.AsyncClient,
        settings: Settings,
    ) -> None:
        self.store = store
        self.http_client = http_client
        self.settings = settings
        self.provider = settings.CALENDAR_PROVIDER
        self.threshold = timedelta(minutes=settings.TOKEN_REFRESH_THRESHOLD_MINUTES)
        # Entries disappear once no coroutine holds or waits on the lock
        self._refresh_locks: "weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        key = (user_id, self.provider)
        lock = self._refresh_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._refresh_locks[key] = lock
        return lock

    async def _load(self, user_id: str) -> Tuple[Optional[Integration], TokenState]:
        integration = await self.store.get(user_id, self.provider)
        state = classify_integration(integration, datetime.now(timezone.utc), self.threshold)
        return integration, state

    async def get_valid_access_token(self, user_id: str) -> str:
        """
        Return an access token valid for at least the refresh threshold.

        Raises:
            CalendarNotConnectedError: No integration record exists
            CalendarReauthRequiredError: The token is unusable and cannot be refreshed
            TokenRefreshError: The token endpoint rejected the refresh
        """
        integration, state = await self._load(user_id)

        if state == TokenState.MISSING:
            logger.info(f"No {self.provider} integration for user {user_id}")
            raise CalendarNotConnectedError(user_id, self.provider)
        if state == TokenState.VALID:
            assert integration is not None and integration.access_token
            return integration.access_token
        if state == TokenState.UNREFRESHABLE:
            logger.warning(f"Access token for user {user_id} expired and no refresh token is stored")
            raise CalendarReauthRequiredError(user_id, self.provider)

        lock = self._lock_for(user_id)
        async with lock:
            # Another coroutine may have refreshed while we waited
            integration, state = await self._load(user_id)
            if state == TokenState.VALID:
                assert integration is not None and integration.access_token
                logger.debug(f"Reusing access token refreshed concurrently for user {user_id}")
                return integration.access_token
            if state == TokenState.MISSING:
                raise CalendarNotConnectedError(user_id, self.provider)
            if state == TokenState.UNREFRESHABLE:
                raise CalendarReauthRequiredError(user_id, self.provider)

            assert integration is not None and integration.refresh_token
            access_token, expires_at = await self._refresh(user_id, integration.refresh_token)
            await self.store.update_access_token(user_id, self.provider, access_token, expires_at)
            return access_token

    async def _refresh(self, user_id: str, refresh_token: str) -> Tuple[str, datetime]:
        """Exchange a refresh token for a new access token and its expiry."""
        client_id = self.settings.google_calendar_client_id
        client_secret = self.settings.google_calendar_client_secret
        if not client_id or not client_secret:
            logger.error("Google OAuth client credentials are not configured")
            raise TokenRefreshError("OAuth client credentials are not configured")

        logger.info(f"Refreshing {self.provider} access token for user {user_id}")
        try:
            response = await self.http_client.post(
                self.settings.GOOGLE_TOKEN_URL,
                data={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
                headers={"Accept": "application/json"},
            )
        except httpx.TimeoutException as e:
            logger.error(f"Timeout refreshing token for user {user_id}")
            raise TokenRefreshError("Token endpoint timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Network error refreshing token for user {user_id}: {e}")
            raise TokenRefreshError("Token endpoint unreachable") from e

        if response.status_code != 200:
            logger.error(
                "Token refresh rejected",
                user_id=user_id,
                status_code=response.status_code,
                response_body=response.text[:500],
            )
            raise TokenRefreshError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise TokenRefreshError("Token endpoint returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise TokenRefreshError("Token endpoint returned an unexpected body")

        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not access_token or not isinstance(access_token, str):
            raise TokenRefreshError("Token response did not include an access token")
        try:
            expires_in_seconds = int(expires_in)
        except (TypeError, ValueError) as e:
            raise TokenRefreshError("Token response has an invalid expires_in") from e
        if expires_in_seconds <= 0:
            raise TokenRefreshError("Token response has a non-positive expires_in")

        expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
        logger.info(
            f"Refreshed access token for user {user_id}",
            expires_at=expires_at.isoformat(),
        )
        return access_token, expires_at
