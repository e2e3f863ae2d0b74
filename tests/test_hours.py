"""Tests for operating hours and clock helpers"""

from datetime import datetime

from app.schemas.settings import WeeklySchedule
from app.services.clock import format_minutes, now_in_timezone
from app.services.geo import haversine_km
from app.services.hours import (
    format_weekly_hours,
    next_opening_utc,
    parse_schedule,
    should_be_open_now,
    time_until_status_change,
)

TZ = "Africa/Lagos"

# 2024-01-15 is a Monday; Lagos is UTC+1 all year
MONDAY_8AM_LAGOS = datetime(2024, 1, 15, 7, 0)
MONDAY_11AM_LAGOS = datetime(2024, 1, 15, 10, 0)
MONDAY_1030PM_LAGOS = datetime(2024, 1, 15, 21, 30)

SCHEDULE = WeeklySchedule.model_validate(
    {
        "monday": {"open": "09:00", "close": "21:00"},
        "tuesday": {"open": "09:00", "close": "21:00"},
        "sunday": {"closed": True},
    }
)


def test_haversine():
    assert haversine_km(6.2103, 7.0707, 6.2103, 7.0707) == 0
    # Awka to Lagos
    assert 390 < haversine_km(6.2103, 7.0707, 6.5244, 3.3792) < 430


def test_format_minutes():
    assert format_minutes(0) == "12:00 AM"
    assert format_minutes(9 * 60 + 5) == "9:05 AM"
    assert format_minutes(12 * 60) == "12:00 PM"
    assert format_minutes(21 * 60) == "9:00 PM"


def test_now_in_timezone_treats_naive_as_utc():
    local = now_in_timezone(TZ, MONDAY_11AM_LAGOS)
    assert local.hour == 11
    assert local.utcoffset().total_seconds() == 3600


def test_within_hours():
    check = should_be_open_now(SCHEDULE, TZ, MONDAY_11AM_LAGOS)
    assert check.should_be_open is True
    assert check.reason == "Within operating hours"
    assert check.today_hours.open == "09:00"


def test_before_opening():
    check = should_be_open_now(SCHEDULE, TZ, MONDAY_8AM_LAGOS)
    assert check.should_be_open is False
    assert check.reason == "Opens at 9:00 AM"
    assert check.today_hours is not None


def test_after_closing():
    check = should_be_open_now(SCHEDULE, TZ, MONDAY_1030PM_LAGOS)
    assert check.should_be_open is False
    assert check.reason == "Closed for the day (closes at 9:00 PM)"


def test_closing_minute_counts_as_closed():
    check = should_be_open_now(SCHEDULE, TZ, datetime(2024, 1, 15, 20, 0))
    assert check.should_be_open is False


def test_closed_day():
    check = should_be_open_now(SCHEDULE, TZ, datetime(2024, 1, 14, 12, 0))
    assert check.should_be_open is False
    assert check.reason == "Closed on sundays"
    assert check.today_hours.closed is True


def test_not_configured():
    assert should_be_open_now(None, TZ, MONDAY_11AM_LAGOS).reason == "Operating hours not configured"
    # Wednesday has no entry
    check = should_be_open_now(SCHEDULE, TZ, datetime(2024, 1, 17, 10, 0))
    assert check.should_be_open is False
    assert check.reason == "Operating hours not configured"
    assert check.today_hours is None


def test_invalid_blob_is_not_configured():
    assert parse_schedule({"monday": {"open": "25:00", "close": "21:00"}}) is None
    assert parse_schedule({}) is None
    assert parse_schedule({"monday": {"open": "10:00", "close": "22:00"}}).monday.close == "22:00"


def test_time_until_status_change():
    change = time_until_status_change(SCHEDULE, TZ, MONDAY_8AM_LAGOS)
    assert (change.action, change.minutes, change.formatted_time) == ("open", 60, "9:00 AM")

    change = time_until_status_change(SCHEDULE, TZ, MONDAY_11AM_LAGOS)
    assert (change.action, change.minutes) == ("close", 600)

    assert time_until_status_change(SCHEDULE, TZ, MONDAY_1030PM_LAGOS) is None


def test_next_opening_utc():
    assert next_opening_utc(SCHEDULE, TZ, MONDAY_8AM_LAGOS) == datetime(2024, 1, 15, 8, 0)
    assert next_opening_utc(SCHEDULE, TZ, MONDAY_1030PM_LAGOS) is None


def test_format_weekly_hours():
    hours = format_weekly_hours(SCHEDULE)
    assert hours["monday"] == "9:00 AM - 9:00 PM"
    assert hours["sunday"] == "Closed"
    assert hours["wednesday"] == "Hours not available"
    assert format_weekly_hours(None)["monday"] == "Not available"
