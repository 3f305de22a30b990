import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict

import httpx
from fastapi import FastAPI, Request
from sqlmodel import text

from services.common.http_errors import register_exception_handlers
from services.common.logging_config import (
    create_request_logging_middleware,
    get_logger,
    log_service_shutdown,
    log_service_startup,
    setup_service_logging,
)
from services.voice_calendar.api.vapi import router as vapi_router
from services.voice_calendar.core.dependencies import build_tool_handlers
from services.voice_calendar.core.settings import get_settings
from services.voice_calendar.models import create_engine, create_session_factory

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    settings = get_settings()

    setup_service_logging(
        service_name=settings.SERVICE_NAME,
        log_level=settings.LOG_LEVEL,
        log_format=settings.LOG_FORMAT,
    )
    log_service_startup(
        settings.SERVICE_NAME,
        app_name=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        debug=settings.DEBUG,
        test_mode=settings.TEST_MODE,
    )
    if settings.TEST_MODE:
        logger.warning("TEST_MODE is enabled: unattributed calls use the test user")

    engine = create_engine(settings.db_url_voice_calendar)
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(settings.HTTP_TIMEOUT_SECONDS))
    session_factory = create_session_factory(engine)

    app.state.session_factory = session_factory
    app.state.http_client = http_client
    app.state.tool_handlers = build_tool_handlers(settings, http_client, session_factory)
    try:
        yield
    finally:
        await http_client.aclose()
        await engine.dispose()
        log_service_shutdown(settings.SERVICE_NAME)


app = FastAPI(
    title="Voice Calendar Service",
    description="Webhook service that checks availability and books meetings on users' Google Calendars for voice agents",
    version="0.1.0",
    openapi_tags=[
        {
            "name": "vapi",
            "description": "Voice agent tool calls for calendar availability and booking",
        },
    ],
    debug=False,
    lifespan=lifespan,
)

app.middleware("http")(create_request_logging_middleware())

register_exception_handlers(app)

app.include_router(vapi_router)


@app.get("/")
async def read_root() -> Dict[str, str]:
    settings = get_settings()
    return {"status": "ok", "service": settings.APP_NAME}


@app.get("/health")
async def health_check(request: Request) -> Dict[str, Any]:
    """
    Health check endpoint for load balancers and monitoring.
    Checks database connectivity and the OAuth client configuration.
    """
    settings = get_settings()
    start_time = time.time()

    db_status = "ok"
    db_error = None
    db_response_time = None
    try:
        session_factory = request.app.state.session_factory
        async with session_factory() as session:
            db_start = time.time()
            await session.execute(text("SELECT 1"))
            db_response_time = round((time.time() - db_start) * 1000, 2)
    except Exception as e:
        db_status = "error"
        db_error = str(e) if settings.DEBUG else "Database unavailable"
        logger.error(f"Health check database query failed: {e}")

    config_issues = []
    if not settings.google_calendar_client_id:
        config_issues.append("GOOGLE_CALENDAR_CLIENT_ID not configured")
    if not settings.google_calendar_client_secret:
        config_issues.append("GOOGLE_CALENDAR_CLIENT_SECRET not configured")
    config_status = "ok" if not config_issues else "error"

    overall_status = "ok" if db_status == "ok" and config_status == "ok" else "error"
    return {
        "status": overall_status,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": {
            "database": {
                "status": db_status,
                "response_time_ms": db_response_time,
                "error": db_error,
            },
            "configuration": {"status": config_status, "issues": config_issues},
        },
        "performance": {"total_check_time_ms": round((time.time() - start_time) * 1000, 2)},
    }


@app.get("/ready")
async def ready_check() -> Dict[str, str]:
    settings = get_settings()
    return {
        "status": "ok",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
