"""
Integration Store: persistence of per-user calendar OAuth credentials.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from services.common.http_errors import ErrorCode, ServiceError
from services.common.logging_config import get_logger
from services.voice_calendar.models import Integration

logger = get_logger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo on the way back; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class IntegrationStore(ABC):
    """Read and refresh-update access to integration records."""

    @abstractmethod
    async def get(self, user_id: str, provider: str) -> Optional[Integration]:
        """Return the integration for ``(user_id, provider)``, or None."""

    @abstractmethod
    async def update_access_token(
        self, user_id: str, provider: str, access_token: str, expires_at: datetime
    ) -> None:
        """Persist a refreshed access token and its expiry."""


class SqlIntegrationStore(IntegrationStore):
    """IntegrationStore backed by the ``user_integrations`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get(self, user_id: str, provider: str) -> Optional[Integration]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Integration).where(
                        Integration.user_id == user_id,
                        Integration.provider == provider,
                    )
                )
                integration = result.scalars().first()
        except Exception as e:
            logger.error(f"Failed to load {provider} integration for user {user_id}: {e}")
            raise ServiceError(
                "Failed to load calendar integration",
                code=ErrorCode.DATABASE_ERROR,
                details={"user_id": user_id, "provider": provider},
            ) from e

        if integration is not None:
            integration.expires_at = _as_utc(integration.expires_at)
        return integration

    async def update_access_token(
        self, user_id: str, provider: str, access_token: str, expires_at: datetime
    ) -> None:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Integration).where(
                        Integration.user_id == user_id,
                        Integration.provider == provider,
                    )
                )
                integration = result.scalars().first()
                if integration is None:
                    raise ServiceError(
                        "Integration disappeared during token refresh",
                        code=ErrorCode.DATABASE_ERROR,
                        details={"user_id": user_id, "provider": provider},
                    )
                integration.access_token = access_token
                integration.expires_at = expires_at
                integration.updated_at = datetime.now(timezone.utc)
                session.add(integration)
                await session.commit()
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"Failed to store refreshed token for user {user_id}: {e}")
            raise ServiceError(
                "Failed to store refreshed access token",
                code=ErrorCode.DATABASE_ERROR,
                details={"user_id": user_id, "provider": provider},
            ) from e

        logger.info(
            "Stored refreshed access token",
            user_id=user_id,
            provider=provider,
            expires_at=expires_at.isoformat(),
        )
