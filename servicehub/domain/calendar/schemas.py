"""Calendar domain schemas - Pydantic models for opening hours and holidays"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel


class Period(BaseModel):
    """One open/close interval within a day (HH:MM, same day)"""

    open: str
    close: str


class DaySchedule(BaseModel):
    """Weekly template entry for a weekday in a season"""

    is_closed: bool
    periods: list[Period] = []


class ResolvedDay(BaseModel):
    """Effective schedule for a calendar date after holiday overrides"""

    date: dt.date
    day_name: str
    is_closed: bool
    periods: list[Period] = []
    is_holiday: bool = False
    holiday_name: Optional[str] = None


class NextOpening(BaseModel):
    date: dt.date
    day_name: str
    time: str


class OpeningStatus(BaseModel):
    is_open: bool
    current_period: Optional[Period] = None
    next_open: Optional[NextOpening] = None
    today_hours: ResolvedDay
    season: str


class OpeningCheck(BaseModel):
    """Result of checking a date + time against opening hours"""

    valid: bool
    reason: Optional[str] = None
    period: Optional[Period] = None
    periods: list[Period] = []


class OpeningHoursUpdate(BaseModel):
    """Schema for updating one weekday of a season template"""

    season: str
    dayOfWeek: int
    isClosed: bool = False
    periods: Optional[list[dict]] = None


class HolidayCreate(BaseModel):
    """Schema for adding a holiday"""

    date: dt.date
    name: str
    isClosed: bool = True
    specialHours: Optional[list[dict]] = None
    isRecurring: bool = False


class HolidayResponse(BaseModel):
    id: int
    date: dt.date
    name: str
    isClosed: bool
    specialHours: Optional[list[dict]] = None
    isRecurring: bool
