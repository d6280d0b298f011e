"""Shared validation utilities"""

import re
from datetime import date
from typing import Optional

TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def validate_time(value: Optional[str]) -> Optional[str]:
    """
    Validate a time-of-day string.

    Args:
        value: Time in HH:MM format (24h). A trailing ":SS" is accepted and dropped.

    Returns:
        Normalized HH:MM string

    Raises:
        ValueError: If the time is not a valid HH:MM value
    """
    if value is None:
        return value

    value = value.strip()
    if len(value) == 8 and value.count(":") == 2:
        value = value[:5]

    if not TIME_PATTERN.match(value):
        raise ValueError("Time must be in HH:MM format")

    return value


def time_to_minutes(value: str) -> int:
    """Convert HH:MM to minutes since midnight"""
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def parse_date(value) -> date:
    """
    Parse a calendar date.

    Accepts a date, "YYYY-MM-DD" or a full ISO timestamp (only the date part is used).

    Raises:
        ValueError: If the value is not a valid date
    """
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        raise ValueError("Date must be in YYYY-MM-DD format")
    return date.fromisoformat(value[:10])


def validate_periods(periods: Optional[list]) -> list[dict]:
    """
    Validate a list of opening periods.

    Every period needs HH:MM open/close with open < close; periods must not overlap.
    Returns the periods sorted by opening time.

    Raises:
        ValueError: With a message describing the first problem found
    """
    if not periods:
        return []

    normalized = []
    for period in periods:
        if not isinstance(period, dict) or not period.get("open") or not period.get("close"):
            raise ValueError("Each period must contain open and close")
        open_time = validate_time(period["open"])
        close_time = validate_time(period["close"])
        if time_to_minutes(open_time) >= time_to_minutes(close_time):
            raise ValueError(f"Period {open_time}-{close_time} must open before it closes")
        normalized.append({"open": open_time, "close": close_time})

    normalized.sort(key=lambda p: time_to_minutes(p["open"]))
    for previous, current in zip(normalized, normalized[1:]):
        if time_to_minutes(current["open"]) < time_to_minutes(previous["close"]):
            raise ValueError(
                f"Periods {previous['open']}-{previous['close']} and "
                f"{current['open']}-{current['close']} overlap"
            )

    return normalized
