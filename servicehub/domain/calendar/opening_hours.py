"""
Opening-Hours Resolver
Answers "is the business open at this instant?" and "is this date + time inside opening hours?"
using the seasonal weekly template, overridden by holidays.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import BUSINESS_TIMEZONE
from ...shared.validators import time_to_minutes
from .repository import CalendarStore
from .schemas import NextOpening, OpeningCheck, OpeningStatus, Period, ResolvedDay

logger = logging.getLogger(__name__)

# Indexed by day_of_week (0 = Sunday)
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]

# How far ahead find_next_open looks
NEXT_OPEN_LOOKAHEAD_DAYS = 7


def get_season(day: date) -> str:
    """Winter runs from November 1 through February 1 inclusive"""
    if day.month >= 11 or day.month == 1:
        return "winter"
    if day.month == 2 and day.day == 1:
        return "winter"
    return "standard"


def day_of_week(day: date) -> int:
    """0 = Sunday ... 6 = Saturday"""
    return (day.weekday() + 1) % 7


def is_weekday(day: date) -> bool:
    """Monday through Friday"""
    return day.weekday() < 5


def format_periods(periods: list[Period]) -> str:
    return ", ".join(f"{p.open}-{p.close}" for p in periods)


def find_period(periods: list[Period], minutes: int) -> Optional[Period]:
    """Period containing the minute-of-day, using half-open [open, close)"""
    for period in periods:
        if time_to_minutes(period.open) <= minutes < time_to_minutes(period.close):
            return period
    return None


class OpeningHoursResolver:
    """Resolve effective opening hours for dates and instants in the business time zone"""

    def __init__(self, store: CalendarStore, tz: Optional[str] = None):
        self.store = store
        self.tz = ZoneInfo(tz or BUSINESS_TIMEZONE)

    def to_local(self, instant: datetime) -> datetime:
        """Convert an instant to business-local time; naive values are taken as UTC"""
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        return instant.astimezone(self.tz)

    def resolve_day(self, day: date) -> ResolvedDay:
        """
        Effective schedule for a date.

        A holiday fully replaces the weekly template: closed, or its special hours when
        it does not close the business. A non-closing holiday without special hours
        resolves to closed.
        """
        dow = day_of_week(day)
        holiday = self.store.get_holiday_for_date(day)

        if holiday:
            periods = [] if holiday.is_closed else (holiday.special_hours or [])
            return ResolvedDay(
                date=day,
                day_name=DAY_NAMES[dow],
                is_closed=not periods,
                periods=periods,
                is_holiday=True,
                holiday_name=holiday.name,
            )

        schedule = self.store.get_day_schedule(dow, get_season(day))
        return ResolvedDay(
            date=day,
            day_name=DAY_NAMES[dow],
            is_closed=schedule.is_closed or not schedule.periods,
            periods=[] if schedule.is_closed else schedule.periods,
        )

    def get_status(self, instant: Optional[datetime] = None) -> OpeningStatus:
        """Current open/closed status with the next opening time"""
        local = self.to_local(instant or datetime.now(timezone.utc))
        today = local.date()
        minutes = local.hour * 60 + local.minute

        today_hours = self.resolve_day(today)
        current_period = None if today_hours.is_closed else find_period(today_hours.periods, minutes)

        return OpeningStatus(
            is_open=current_period is not None,
            current_period=current_period,
            next_open=self.find_next_open(today, minutes, today_hours),
            today_hours=today_hours,
            season=get_season(today),
        )

    def find_next_open(
        self, today: date, minutes: int, today_hours: Optional[ResolvedDay] = None
    ) -> Optional[NextOpening]:
        """
        Next opening time: a later period today, else the first period of the first
        day within the lookahead that has any periods. None when nothing opens.
        """
        today_hours = today_hours or self.resolve_day(today)
        for period in today_hours.periods:
            if time_to_minutes(period.open) > minutes:
                return NextOpening(date=today, day_name=today_hours.day_name, time=period.open)

        for offset in range(1, NEXT_OPEN_LOOKAHEAD_DAYS + 1):
            resolved = self.resolve_day(today + timedelta(days=offset))
            if resolved.is_closed or not resolved.periods:
                continue
            return NextOpening(date=resolved.date, day_name=resolved.day_name, time=resolved.periods[0].open)

        return None

    def is_within_opening_hours(self, day: date, time_str: str) -> OpeningCheck:
        """Check a business-local date + HH:MM time against the resolved day"""
        resolved = self.resolve_day(day)

        if resolved.is_closed:
            if resolved.is_holiday:
                reason = f"Closed for holiday: {resolved.holiday_name}"
            else:
                reason = f"{resolved.day_name} is closed"
            return OpeningCheck(valid=False, reason=reason)

        period = find_period(resolved.periods, time_to_minutes(time_str))
        if period:
            return OpeningCheck(valid=True, period=period, periods=resolved.periods)

        return OpeningCheck(
            valid=False,
            reason=f"Time is outside opening hours ({format_periods(resolved.periods)})",
            periods=resolved.periods,
        )

    def get_week_schedule(self, season: str) -> list[dict]:
        """Weekly template rows (Sunday first) for a season, without holiday overrides"""
        schedule = []
        for dow in range(7):
            hours = self.store.get_day_schedule(dow, season)
            schedule.append(
                {
                    "dayOfWeek": dow,
                    "dayName": DAY_NAMES[dow],
                    "isClosed": hours.is_closed,
                    "periods": [p.model_dump() for p in hours.periods],
                }
            )
        return schedule

    def today(self, now: Optional[datetime] = None) -> date:
        """Business-local calendar date"""
        return self.to_local(now or datetime.now(timezone.utc)).date()
