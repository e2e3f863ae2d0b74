"""Timezone-aware wall-clock helpers"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def now_in_timezone(tz_name: str, now: Optional[datetime] = None) -> datetime:
    """Current time (or ``now``) converted to ``tz_name``.

    Naive datetimes are treated as UTC, matching how timestamps are stored.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return now.astimezone(ZoneInfo(tz_name))


def day_name(moment: datetime) -> str:
    return DAY_NAMES[moment.weekday()]


def time_to_minutes(value: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight"""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_of_day(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``h:mm AM/PM``"""
    hours, mins = divmod(minutes, 60)
    period = "PM" if hours >= 12 else "AM"
    display = hours - 12 if hours > 12 else (12 if hours == 0 else hours)
    return f"{display}:{mins:02d} {period}"
