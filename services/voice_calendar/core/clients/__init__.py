from services.voice_calendar.core.clients.base import BaseAPIClient
from services.voice_calendar.core.clients.google import GoogleCalendarAPIClient

__all__ = ["BaseAPIClient", "GoogleCalendarAPIClient"]
