#!/usr/bin/env python3
"""
Seed a Google Calendar integration for local development.

Creates the ``user_integrations`` table if needed and upserts one record so
the webhook can be exercised without running the OAuth consent flow.

Usage:
    DB_URL_VOICE_CALENDAR=sqlite:///./voice_calendar.db \\
        python scripts/seed-integration.py --user-id user-123 \\
        --refresh-token 1//0g-refresh --access-token ya29.a0-access --expires-in 3600
"""

import argparse
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlmodel import select

from services.voice_calendar.core.settings import get_settings
from services.voice_calendar.models import (
    Integration,
    create_all_tables,
    create_engine,
    create_session_factory,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def seed_integration(
    user_id: str,
    refresh_token: Optional[str],
    access_token: Optional[str],
    expires_in: Optional[int],
) -> None:
    settings = get_settings()
    engine = create_engine(settings.db_url_voice_calendar)
    try:
        await create_all_tables(engine)
        session_factory = create_session_factory(engine)

        expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=expires_in)
            if access_token and expires_in
            else None
        )

        async with session_factory() as session:
            result = await session.execute(
                select(Integration).where(
                    Integration.user_id == user_id,
                    Integration.provider == settings.CALENDAR_PROVIDER,
                )
            )
            integration = result.scalars().first()
            if integration is None:
                integration = Integration(user_id=user_id, provider=settings.CALENDAR_PROVIDER)
                logger.info(f"Creating integration for user {user_id}")
            else:
                logger.info(f"Updating integration {integration.id} for user {user_id}")

            integration.refresh_token = refresh_token
            integration.access_token = access_token
            integration.expires_at = expires_at
            integration.updated_at = datetime.now(timezone.utc)
            session.add(integration)
            await session.commit()
    finally:
        await engine.dispose()

    logger.info(
        f"Seeded {settings.CALENDAR_PROVIDER} integration for {user_id} "
        f"(access token: {'yes' if access_token else 'no'}, "
        f"refresh token: {'yes' if refresh_token else 'no'})"
    )


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--refresh-token")
    parser.add_argument("--access-token")
    parser.add_argument("--expires-in", type=int, default=3600)
    args = parser.parse_args()

    asyncio.run(
        seed_integration(args.user_id, args.refresh_token, args.access_token, args.expires_in)
    )


if __name__ == "__main__":
    main()
