"""
Availability Validator
Checks a requested slot against the business calendar before an appointment is booked.
Each failed check raises its own error code so the caller knows which constraint failed.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from ...shared.errors import ConstraintError
from ..calendar.opening_hours import OpeningHoursResolver, is_weekday

logger = logging.getLogger(__name__)


class AvailabilityValidator:
    def __init__(self, resolver: OpeningHoursResolver):
        self.resolver = resolver

    def local_start(self, day: date, start_time: str) -> datetime:
        """Business-local aware datetime for a date + HH:MM"""
        hours, minutes = (int(part) for part in start_time.split(":")[:2])
        return datetime.combine(day, time(hours, minutes), tzinfo=self.resolver.tz)

    def validate_booking(
        self,
        day: date,
        start_time: str,
        end_time: Optional[str] = None,
        is_staff_actor: bool = False,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Validate a date + time slot.

        Raises:
            ConstraintError: WEEKDAY_ONLY, OUTSIDE_OPENING_HOURS,
                END_OUTSIDE_OPENING_HOURS or DATE_IN_PAST
        """
        if not is_staff_actor and not is_weekday(day):
            raise ConstraintError("Appointments can only be booked on weekdays (Mon-Fri)", code="WEEKDAY_ONLY")

        start_check = self.resolver.is_within_opening_hours(day, start_time)
        if not start_check.valid:
            raise ConstraintError(start_check.reason, code="OUTSIDE_OPENING_HOURS")

        if end_time:
            end_check = self.resolver.is_within_opening_hours(day, end_time)
            if not end_check.valid:
                raise ConstraintError(f"End time: {end_check.reason}", code="END_OUTSIDE_OPENING_HOURS")

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if self.local_start(day, start_time) < now:
            raise ConstraintError("Appointments cannot be booked in the past", code="DATE_IN_PAST")

    def validate_proposal_date(self, day: date, now: Optional[datetime] = None) -> None:
        """A proposal is date-only: weekday, and not before today in the business zone"""
        if not is_weekday(day):
            raise ConstraintError("Appointments can only be booked on weekdays (Mon-Fri)", code="WEEKDAY_ONLY")

        if day < self.resolver.today(now):
            raise ConstraintError("Appointments cannot be proposed in the past", code="DATE_IN_PAST")
