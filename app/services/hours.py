"""Operating-hours gate.

Decides, from the weekly schedule and the restaurant's wall clock, whether
the restaurant should be taking orders right now. Order intake stores
orders outside the window as ``scheduled``, and a periodic job opens and
closes the kitchen as the window changes.
Nothing here touches the database except :func:`load_schedule`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.tenant import RestaurantSettings
from app.schemas.settings import DayHours, WeeklySchedule
from app.services.clock import (
    DAY_NAMES,
    day_name,
    format_minutes,
    minutes_of_day,
    now_in_timezone,
    time_to_minutes,
)

logger = structlog.get_logger()


@dataclass
class HoursCheck:
    should_be_open: bool
    reason: str
    today_hours: Optional[DayHours] = None


@dataclass
class StatusChange:
    action: str  # open, close
    minutes: int
    formatted_time: str


def parse_schedule(hours_json: Optional[dict]) -> Optional[WeeklySchedule]:
    """Validate a stored hours blob; unusable blobs count as not configured"""
    if not hours_json:
        return None
    try:
        return WeeklySchedule.model_validate(hours_json)
    except PydanticValidationError as e:
        logger.warning("Invalid operating hours configuration", error=str(e))
        return None


async def load_schedule(db: AsyncSession, tenant_id: UUID) -> Optional[WeeklySchedule]:
    result = await db.execute(
        select(RestaurantSettings.hours_json).where(RestaurantSettings.tenant_id == tenant_id)
    )
    return parse_schedule(result.scalar_one_or_none())


def should_be_open_now(
    schedule: Optional[WeeklySchedule],
    tz_name: str,
    now: Optional[datetime] = None,
) -> HoursCheck:
    """Check the current time against today's opening window"""
    local_now = now_in_timezone(tz_name, now)
    today = day_name(local_now)
    today_hours = schedule.for_day(today) if schedule else None

    if today_hours is None:
        return HoursCheck(False, "Operating hours not configured")

    if today_hours.closed:
        return HoursCheck(False, f"Closed on {today}s", today_hours)

    current = minutes_of_day(local_now)
    open_minutes = time_to_minutes(today_hours.open)
    close_minutes = time_to_minutes(today_hours.close)

    if current < open_minutes:
        return HoursCheck(False, f"Opens at {format_minutes(open_minutes)}", today_hours)

    if current >= close_minutes:
        return HoursCheck(
            False,
            f"Closed for the day (closes at {format_minutes(close_minutes)})",
            today_hours,
        )

    return HoursCheck(True, "Within operating hours", today_hours)


def time_until_status_change(
    schedule: Optional[WeeklySchedule],
    tz_name: str,
    now: Optional[datetime] = None,
) -> Optional[StatusChange]:
    """Next opening or closing today, or None once closed for the day"""
    local_now = now_in_timezone(tz_name, now)
    today_hours = schedule.for_day(day_name(local_now)) if schedule else None
    if today_hours is None or today_hours.closed:
        return None

    current = minutes_of_day(local_now)
    open_minutes = time_to_minutes(today_hours.open)
    close_minutes = time_to_minutes(today_hours.close)

    if current < open_minutes:
        return StatusChange("open", open_minutes - current, format_minutes(open_minutes))
    if current < close_minutes:
        return StatusChange("close", close_minutes - current, format_minutes(close_minutes))
    return None


def next_opening_utc(
    schedule: Optional[WeeklySchedule],
    tz_name: str,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Today's opening time as naive UTC, if it is still ahead"""
    change = time_until_status_change(schedule, tz_name, now)
    if change is None or change.action != "open":
        return None
    local_now = now_in_timezone(tz_name, now).replace(second=0, microsecond=0)
    opening = local_now + timedelta(minutes=change.minutes)
    return opening.astimezone(timezone.utc).replace(tzinfo=None)


def format_day_hours(hours: Optional[DayHours]) -> str:
    if hours is None:
        return "Hours not available"
    if hours.closed:
        return "Closed"
    return (
        f"{format_minutes(time_to_minutes(hours.open))} - "
        f"{format_minutes(time_to_minutes(hours.close))}"
    )


def format_weekly_hours(schedule: Optional[WeeklySchedule]) -> Dict[str, str]:
    if schedule is None:
        return {day: "Not available" for day in DAY_NAMES}
    return {day: format_day_hours(schedule.for_day(day)) for day in DAY_NAMES}
