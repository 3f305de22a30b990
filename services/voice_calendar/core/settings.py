from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Voice Calendar Service settings and configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Database configuration
    db_url_voice_calendar: str = Field(
        ...,  # Required field - no default to prevent production mistakes
        description="Database connection URL for the integration store",
        validation_alias=AliasChoices("DB_URL_VOICE_CALENDAR", "db_url_voice_calendar"),
    )

    # Service configuration
    SERVICE_NAME: str = Field(default="voice-calendar", description="Service name")
    PORT: int = Field(default=3000, description="Port to bind to")
    HOST: str = Field(default="0.0.0.0", description="Host to bind to")
    DEBUG: bool = Field(default=False, description="Debug mode")

    # Google OAuth client credentials used for token refresh
    google_calendar_client_id: Optional[str] = Field(
        default=None,
        description="Google OAuth client ID",
        validation_alias=AliasChoices(
            "GOOGLE_CALENDAR_CLIENT_ID", "GOOGLE_CLIENT_ID", "google_calendar_client_id"
        ),
    )
    google_calendar_client_secret: Optional[str] = Field(
        default=None,
        description="Google OAuth client secret",
        validation_alias=AliasChoices(
            "GOOGLE_CALENDAR_CLIENT_SECRET",
            "GOOGLE_CLIENT_SECRET",
            "google_calendar_client_secret",
        ),
    )

    # Shared secret the voice platform sends in the x-vapi-secret header
    vapi_webhook_secret: Optional[str] = Field(
        default=None,
        description="Webhook shared secret; verification is skipped when unset",
    )

    # Google endpoints
    GOOGLE_TOKEN_URL: str = Field(
        default="https://oauth2.googleapis.com/token",
        description="OAuth token exchange endpoint",
    )
    GOOGLE_API_BASE_URL: str = Field(
        default="https://www.googleapis.com", description="Google API base URL"
    )
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0, description="Timeout for outbound HTTP calls"
    )

    # Calendar behaviour
    CALENDAR_PROVIDER: str = Field(
        default="google-calendar",
        description="Provider tag of the integration records to use",
    )
    TOKEN_REFRESH_THRESHOLD_MINUTES: int = Field(
        default=5, description="Refresh access tokens this close to expiry"
    )
    AVAILABILITY_PADDING_MINUTES: int = Field(
        default=60, description="Padding applied to both ends of the event query window"
    )
    DEFAULT_MEETING_DURATION_MINUTES: int = Field(
        default=30, description="Meeting length when the caller gives neither end time nor duration"
    )
    BOOKING_IDEMPOTENCY_ENABLED: bool = Field(
        default=False,
        description="Derive provider event IDs from tool call IDs to suppress duplicate bookings",
    )

    # Test identity gate; never enabled in production
    TEST_MODE: bool = Field(default=False, description="Allow the test user fallback")
    TEST_USER_ID: Optional[str] = Field(
        default=None, description="User ID used when a webhook carries no identity"
    )

    # Logging configuration
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: str = Field(default="json", description="Log format (json or text)")

    # Application info
    APP_NAME: str = Field(default="voice-calendar-service", description="Application name")
    APP_VERSION: str = Field(default="0.1.0", description="Application version")
    ENVIRONMENT: str = Field(
        default="development",
        description="Environment (development, staging, production)",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance, creating it if necessary."""
    global _settings
    if _settings is None:
        _settings = Settings()  # type: ignore[call-arg]
    return _settings
