"""
Unit tests for date/time resolution and speech formatting.
"""

from datetime import datetime, timezone

import pytest

from services.voice_calendar.core.datetime_resolver import (
    duration,
    format_for_speech,
    parse_date,
    parse_time,
    resolve,
    resolve_duration,
)
from services.voice_calendar.core.exceptions import (
    InvalidDateFormatError,
    InvalidDurationError,
    InvalidTimeFormatError,
)


class TestParseDate:
    def test_iso_date(self):
        assert parse_date("2026-01-20") == (2026, 1, 20)

    def test_slash_date_day_first_when_first_component_over_twelve(self):
        assert parse_date("25/12/2026") == (2026, 12, 25)

    def test_slash_date_month_first_otherwise(self):
        assert parse_date("12/25/2026") == (2026, 12, 25)

    def test_ambiguous_slash_date_reads_month_first(self):
        # 03/04 could be March 4th or April 3rd; month-first is the documented guess
        assert parse_date("03/04/2026") == (2026, 3, 4)

    @pytest.mark.parametrize(
        "value",
        ["20 January 2026", "", "2026-01", "2026/01", "aa/bb/cccc", "2026-02-30", "13/13/2026"],
    )
    def test_invalid_dates(self, value):
        with pytest.raises(InvalidDateFormatError) as exc_info:
            parse_date(value)
        assert exc_info.value.status_code == 422
        assert exc_info.value.to_error_response().details["code"] == "INVALID_DATE_FORMAT"


class TestParseTime:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("2:00 PM", (14, 0)),
            ("2pm", (14, 0)),
            ("12:00 PM", (12, 0)),
            ("12:15 am", (0, 15)),
            ("9:45 AM", (9, 45)),
            ("2 p.m.", (14, 0)),
            ("9:30 A.M.", (9, 30)),
            ("2pm UTC", (14, 0)),
            ("3:15 pm eastern", (15, 15)),
            ("14:00", (14, 0)),
            ("09:30:00", (9, 30)),
            ("0:05", (0, 5)),
        ],
    )
    def test_valid_times(self, value, expected):
        assert parse_time(value) == expected

    @pytest.mark.parametrize(
        "value", ["noon", "25:00", "14:60", "13:00 PM", "0 AM", "", "14", "pm", "about 2 pm"]
    )
    def test_invalid_times(self, value):
        with pytest.raises(InvalidTimeFormatError):
            parse_time(value)


class TestResolve:
    def test_resolves_to_utc(self):
        result = resolve("2026-01-20", "2:00 PM")
        assert result == datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)
        assert result.tzinfo == timezone.utc

    def test_timezone_hint_does_not_shift_components(self):
        plain = resolve("2026-01-20", "14:00")
        hinted = resolve("2026-01-20", "14:00", "America/New_York")
        assert plain == hinted

    def test_propagates_time_errors(self):
        with pytest.raises(InvalidTimeFormatError):
            resolve("2026-01-20", "whenever")


class TestDuration:
    def test_duration_in_minutes(self):
        assert duration("14:00", "15:30") == 90
        assert duration("2:00 PM", "2:45 PM") == 45

    @pytest.mark.parametrize("end", ["14:00", "13:30"])
    def test_non_positive_duration_rejected(self, end):
        with pytest.raises(InvalidDurationError):
            duration("14:00", end)

    def test_resolve_duration_prefers_end_time(self):
        assert resolve_duration("14:00", "15:00", duration_minutes=15) == 60

    def test_resolve_duration_explicit_minutes(self):
        assert resolve_duration("14:00", None, duration_minutes="45") == 45
        assert resolve_duration("14:00", None, duration_minutes=20) == 20

    def test_resolve_duration_default(self):
        assert resolve_duration("14:00") == 30
        assert resolve_duration("14:00", default=60) == 60

    @pytest.mark.parametrize("value", [0, -15, "half an hour"])
    def test_resolve_duration_rejects_bad_minutes(self, value):
        with pytest.raises(InvalidDurationError):
            resolve_duration("14:00", None, duration_minutes=value)


class TestFormatForSpeech:
    def test_utc(self):
        instant = datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)
        assert format_for_speech(instant, "UTC") == "Tuesday, January 20, 2026 at 02:00 PM"

    def test_renders_in_hint_zone(self):
        instant = datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)
        assert (
            format_for_speech(instant, "America/New_York")
            == "Tuesday, January 20, 2026 at 09:00 AM"
        )

    def test_unknown_zone_falls_back_to_utc(self):
        instant = datetime(2026, 1, 20, 14, 0, tzinfo=timezone.utc)
        assert format_for_speech(instant, "Mars/Olympus") == "Tuesday, January 20, 2026 at 02:00 PM"
