"""
Unit tests for the availability engine.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from services.voice_calendar.core.availability import (
    AvailabilityEngine,
    find_conflicts,
    overlaps,
)
from services.voice_calendar.core.exceptions import (
    CalendarReauthRequiredError,
    InvalidDurationError,
    ProviderQueryError,
)
from services.voice_calendar.core.token_manager import TokenManager

SLOT_START = datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)


def at(hour, minute=0):
    return datetime(2026, 1, 20, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def token_manager(integration_store, patch_settings):
    return TokenManager(integration_store, MagicMock(), patch_settings)


@pytest.fixture
def engine(token_manager, calendar_provider):
    return AvailabilityEngine(token_manager, calendar_provider)


class TestOverlap:
    def test_event_inside_slot(self, event_factory):
        assert overlaps(event_factory("Inside", at(14, 5), at(14, 20)), at(14), at(14, 30))

    def test_event_spanning_slot(self, event_factory):
        assert overlaps(event_factory("Long", at(13), at(16)), at(14), at(14, 30))

    def test_touching_boundaries_do_not_conflict(self, event_factory):
        before = event_factory("Before", at(13, 30), at(14))
        after = event_factory("After", at(14, 30), at(15))
        assert find_conflicts([before, after], at(14), at(14, 30)) == []

    def test_conflicts_keep_input_order(self, event_factory):
        events = [
            event_factory("Second half", at(14, 15), at(14, 45)),
            event_factory("Lunch", at(12), at(13)),
            event_factory("First half", at(13, 45), at(14, 10)),
        ]
        conflicts = find_conflicts(events, at(14), at(14, 30))
        assert [e.title for e in conflicts] == ["Second half", "First half"]


class TestAvailabilityEngine:
    @pytest.mark.asyncio
    async def test_free_slot(self, engine, integration_store, calendar_provider, event_factory):
        integration_store.add("user-1")
        calendar_provider.events = [event_factory("Lunch", at(12), at(13))]

        result = await engine.check_availability("user-1", SLOT_START, 30)

        assert result.available is True
        assert result.conflicts == []

    @pytest.mark.asyncio
    async def test_queries_padded_window(self, engine, integration_store, calendar_provider):
        integration_store.add("user-1", access_token="live-token")

        await engine.check_availability("user-1", SLOT_START, 30)

        assert calendar_provider.list_calls == [
            ("live-token", SLOT_START - timedelta(hours=1), at(15, 30))
        ]

    @pytest.mark.asyncio
    async def test_padding_is_configurable(self, token_manager, integration_store, calendar_provider):
        integration_store.add("user-1", access_token="live-token")
        engine = AvailabilityEngine(token_manager, calendar_provider, padding=timedelta(minutes=15))

        await engine.check_availability("user-1", SLOT_START, 30)

        _, time_min, time_max = calendar_provider.list_calls[0]
        assert (time_min, time_max) == (at(13, 45), at(14, 45))

    @pytest.mark.asyncio
    async def test_padding_events_are_not_conflicts(
        self, engine, integration_store, calendar_provider, event_factory
    ):
        integration_store.add("user-1")
        calendar_provider.events = [
            event_factory("Early", at(13, 15), at(14)),
            event_factory("Late", at(14, 30), at(15, 15)),
        ]

        result = await engine.check_availability("user-1", SLOT_START, 30)

        assert result.available is True

    @pytest.mark.asyncio
    async def test_conflicts_reported(self, engine, integration_store, calendar_provider, event_factory):
        integration_store.add("user-1")
        calendar_provider.events = [
            event_factory("Design review", at(13, 30), at(14, 15)),
            event_factory("1:1", at(14, 20), at(15)),
        ]

        result = await engine.check_availability("user-1", SLOT_START, 30)

        assert result.available is False
        assert result.conflict_titles == "Design review, 1:1"

    @pytest.mark.asyncio
    async def test_excluded_event_is_not_a_conflict(
        self, engine, integration_store, calendar_provider, event_factory
    ):
        integration_store.add("user-1")
        calendar_provider.events = [
            event_factory("Already booked", at(14), at(14, 30), event_id="evt-own"),
            event_factory("1:1", at(14, 20), at(15)),
        ]

        result = await engine.check_availability(
            "user-1", SLOT_START, 30, exclude_event_id="evt-own"
        )

        assert result.available is False
        assert result.conflict_titles == "1:1"

    @pytest.mark.asyncio
    async def test_not_connected_reports_available(self, engine, calendar_provider):
        result = await engine.check_availability("nobody", SLOT_START, 30)

        assert result.available is True
        assert result.conflicts == []
        assert calendar_provider.list_calls == []

    @pytest.mark.asyncio
    async def test_reauth_required_propagates(self, engine, integration_store, calendar_provider):
        integration_store.add("user-1", refresh_token=None, expires_in=timedelta(minutes=-5))

        with pytest.raises(CalendarReauthRequiredError):
            await engine.check_availability("user-1", SLOT_START, 30)
        assert calendar_provider.list_calls == []

    @pytest.mark.asyncio
    async def test_provider_failure_propagates(self, engine, integration_store, calendar_provider):
        integration_store.add("user-1")
        calendar_provider.list_error = ProviderQueryError("boom", provider="google", provider_status=500)

        with pytest.raises(ProviderQueryError):
            await engine.check_availability("user-1", SLOT_START, 30)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration_minutes", [0, -30])
    async def test_non_positive_duration_rejected(self, engine, calendar_provider, duration_minutes):
        with pytest.raises(InvalidDurationError):
            await engine.check_availability("user-1", SLOT_START, duration_minutes)
        assert calendar_provider.list_calls == []
