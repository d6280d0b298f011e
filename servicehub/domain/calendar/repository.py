"""Calendar Store - persisted opening hours and holidays with built-in defaults"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models_calendar import SEASONS, Holiday, OpeningHour
from ...shared.errors import ConflictError, NotFoundError, ValidationError
from ...shared.validators import validate_periods, validate_time
from .schemas import DaySchedule

logger = logging.getLogger(__name__)

_WEEKDAY_STANDARD = [{"open": "08:00", "close": "13:00"}, {"open": "14:00", "close": "18:00"}]
_WEEKDAY_WINTER = [{"open": "08:00", "close": "13:00"}, {"open": "14:00", "close": "17:00"}]
_SATURDAY = [{"open": "09:00", "close": "13:00"}]

# Used whenever no row exists for (day_of_week, season) or the lookup fails.
# Keys: season -> day_of_week (0 = Sunday ... 6 = Saturday)
DEFAULT_WEEKLY_HOURS = {
    "standard": {
        0: {"is_closed": True, "periods": []},
        1: {"is_closed": False, "periods": _WEEKDAY_STANDARD},
        2: {"is_closed": False, "periods": _WEEKDAY_STANDARD},
        3: {"is_closed": False, "periods": _WEEKDAY_STANDARD},
        4: {"is_closed": False, "periods": _WEEKDAY_STANDARD},
        5: {"is_closed": False, "periods": _WEEKDAY_STANDARD},
        6: {"is_closed": False, "periods": _SATURDAY},
    },
    "winter": {
        0: {"is_closed": True, "periods": []},
        1: {"is_closed": False, "periods": _WEEKDAY_WINTER},
        2: {"is_closed": False, "periods": _WEEKDAY_WINTER},
        3: {"is_closed": False, "periods": _WEEKDAY_WINTER},
        4: {"is_closed": False, "periods": _WEEKDAY_WINTER},
        5: {"is_closed": False, "periods": _WEEKDAY_WINTER},
        6: {"is_closed": False, "periods": _SATURDAY},
    },
}


def _normalize_periods(periods: Optional[list]) -> list[dict]:
    """Validate staff-supplied periods, mapping problems to stable error codes"""
    for period in periods or []:
        if not isinstance(period, dict) or not period.get("open") or not period.get("close"):
            raise ValidationError("Each period must contain open and close", code="INVALID_PERIOD")
        try:
            validate_time(period["open"])
            validate_time(period["close"])
        except ValueError as e:
            raise ValidationError("Times must be in HH:MM format", code="INVALID_TIME_FORMAT") from e

    try:
        return validate_periods(periods)
    except ValueError as e:
        raise ValidationError(str(e), code="INVALID_PERIOD") from e


class CalendarStore:
    """Read and configure weekly templates and holidays"""

    def __init__(self, db: Session, defaults: Optional[dict] = None):
        self.db = db
        self.defaults = defaults if defaults is not None else DEFAULT_WEEKLY_HOURS

    def get_default_schedule(self, day_of_week: int, season: str) -> DaySchedule:
        entry = self.defaults.get(season, {}).get(day_of_week)
        if not entry:
            return DaySchedule(is_closed=True, periods=[])
        periods = [] if entry["is_closed"] else (entry.get("periods") or [])
        return DaySchedule(is_closed=not periods, periods=periods)

    def get_day_schedule(self, day_of_week: int, season: str) -> DaySchedule:
        """Persisted template for the weekday, falling back to the defaults"""
        try:
            row = (
                self.db.query(OpeningHour)
                .filter(OpeningHour.day_of_week == day_of_week, OpeningHour.season == season)
                .first()
            )
            if row:
                # an open row without periods has no bookable time
                periods = [] if row.is_closed else (row.periods or [])
                return DaySchedule(is_closed=not periods, periods=periods)
        except Exception as e:
            self.db.rollback()
            logger.warning(f"⚠️ Failed to fetch opening hours from DB, using defaults: {e}")

        return self.get_default_schedule(day_of_week, season)

    def get_holiday_for_date(self, day: date) -> Optional[Holiday]:
        """Exact-date holiday first, then a recurring holiday on the same month-day"""
        try:
            holiday = self.db.query(Holiday).filter(Holiday.date == day).first()
            if holiday:
                return holiday

            recurring = (
                self.db.query(Holiday)
                .filter(Holiday.is_recurring.is_(True))
                .order_by(Holiday.date)
                .all()
            )
            for candidate in recurring:
                if candidate.date.month == day.month and candidate.date.day == day.day:
                    return candidate
        except Exception as e:
            self.db.rollback()
            logger.warning(f"⚠️ Failed to check holiday from DB: {e}")

        return None

    # Staff configuration

    def upsert_day_schedule(
        self, day_of_week: int, season: str, is_closed: bool, periods: Optional[list]
    ) -> OpeningHour:
        if season not in SEASONS:
            raise ValidationError("Season must be standard or winter", code="INVALID_SEASON")
        if day_of_week < 0 or day_of_week > 6:
            raise ValidationError("dayOfWeek must be between 0 and 6", code="INVALID_DAY")

        normalized = [] if is_closed else _normalize_periods(periods)
        if not is_closed and not normalized:
            raise ValidationError("An open day needs at least one period", code="INVALID_PERIOD")

        row = (
            self.db.query(OpeningHour)
            .filter(OpeningHour.day_of_week == day_of_week, OpeningHour.season == season)
            .first()
        )
        if row:
            row.is_closed = is_closed
            row.periods = normalized
        else:
            row = OpeningHour(
                day_of_week=day_of_week, season=season, is_closed=is_closed, periods=normalized
            )
            self.db.add(row)

        self.db.commit()
        self.db.refresh(row)
        logger.info(f"✅ Opening hours updated: season={season}, day={day_of_week}, closed={is_closed}")
        return row

    def list_holidays(self) -> list[Holiday]:
        return self.db.query(Holiday).order_by(Holiday.date.asc()).all()

    def add_holiday(
        self,
        day: date,
        name: str,
        is_closed: bool = True,
        special_hours: Optional[list] = None,
        is_recurring: bool = False,
    ) -> Holiday:
        if not name or not name.strip():
            raise ValidationError("Name is required")

        existing = self.db.query(Holiday).filter(Holiday.date == day).first()
        if existing:
            raise ConflictError("A holiday already exists for this date", code="DUPLICATE_HOLIDAY")

        holiday = Holiday(
            date=day,
            name=name.strip(),
            is_closed=is_closed,
            special_hours=None if is_closed or not special_hours else _normalize_periods(special_hours),
            is_recurring=is_recurring,
        )
        self.db.add(holiday)
        self.db.commit()
        self.db.refresh(holiday)
        logger.info(f"✅ Holiday added: {holiday.id} {day} ({holiday.name})")
        return holiday

    def remove_holiday(self, holiday_id: int) -> None:
        holiday = self.db.query(Holiday).filter(Holiday.id == holiday_id).first()
        if not holiday:
            raise NotFoundError("Holiday")

        self.db.delete(holiday)
        self.db.commit()
        logger.info(f"🗑️ Holiday removed: {holiday_id}")
