"""Typed views over JSON settings blobs"""

import re
from typing import Optional

from pydantic import BaseModel, field_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class DayHours(BaseModel):
    """Opening window for a single weekday"""
    open: str = "09:00"
    close: str = "21:00"
    closed: bool = False

    @field_validator("open", "close")
    @classmethod
    def validate_hhmm(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError(f"Expected HH:MM, got {value!r}")
        return value


class WeeklySchedule(BaseModel):
    """Weekly operating hours keyed by lowercase day name"""
    monday: Optional[DayHours] = None
    tuesday: Optional[DayHours] = None
    wednesday: Optional[DayHours] = None
    thursday: Optional[DayHours] = None
    friday: Optional[DayHours] = None
    saturday: Optional[DayHours] = None
    sunday: Optional[DayHours] = None

    def for_day(self, day: str) -> Optional[DayHours]:
        return getattr(self, day, None)
