from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Text, UniqueConstraint, func
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlmodel import Column, DateTime, Field, SQLModel

from services.common import get_async_database_url


class Provider(str, Enum):
    GOOGLE_CALENDAR = "google-calendar"


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create the async engine for the integration store."""
    async_url = get_async_database_url(database_url)

    connect_args: dict[str, Any] = {}
    engine_kwargs: dict[str, Any] = {}
    if async_url.startswith("postgresql"):
        connect_args["command_timeout"] = 10.0
        connect_args["timeout"] = 30.0
        engine_kwargs.update(
            pool_size=10, max_overflow=20, pool_timeout=30, pool_recycle=3600
        )

    return create_async_engine(
        async_url, echo=echo, connect_args=connect_args, **engine_kwargs
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create tables for local development and tests."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


class Integration(SQLModel, table=True):
    """
    OAuth credentials a user granted for a calendar provider.

    Records are created by the OAuth consent flow elsewhere. This service only
    reads them and, on refresh, rewrites ``access_token`` and ``expires_at``.
    """

    __tablename__ = "user_integrations"  # type: ignore[assignment]
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_user_integrations_user_provider"),
        {"extend_existing": True},
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, max_length=255)
    provider: str = Field(default=Provider.GOOGLE_CALENDAR.value, max_length=50)
    access_token: Optional[str] = Field(default=None, sa_column=Column(Text))
    refresh_token: Optional[str] = Field(default=None, sa_column=Column(Text))
    expires_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True))
    )
    created_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), server_default=func.now()),
    )
    updated_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(
            DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
        ),
    )
