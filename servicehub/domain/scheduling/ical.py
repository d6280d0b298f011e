"""iCalendar (RFC 5545) export for a single appointment"""

from datetime import datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import BUSINESS_NAME, BUSINESS_TIMEZONE, ICAL_UID_DOMAIN
from ...models_appointment import Appointment
from ...shared.errors import ConstraintError

DEFAULT_DURATION = timedelta(hours=1)
PRODID = f"-//{BUSINESS_NAME}//Appointments//EN"


def escape_text(value: Optional[str]) -> str:
    """Escape a TEXT property value"""
    if not value:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def format_location(location: Optional[dict]) -> str:
    location = location or {}
    name = location.get("name")
    if not name:
        return BUSINESS_NAME
    address = location.get("address")
    return f"{name}, {address}" if address else name


def _parse_time(value: str) -> time:
    hours, minutes = (int(part) for part in value.split(":")[:2])
    return time(hours, minutes)


def format_offset(offset: timedelta) -> str:
    """UTC offset as +HHMM / -HHMM"""
    sign = "-" if offset < timedelta(0) else "+"
    minutes = abs(int(offset.total_seconds())) // 60
    return f"{sign}{minutes // 60:02d}{minutes % 60:02d}"


def build_vtimezone(tz_name: str, start: datetime) -> list[str]:
    """
    VTIMEZONE for the TZID used by DTSTART/DTEND, with the observance in effect
    at the event start.
    """
    local = start.replace(tzinfo=ZoneInfo(tz_name))
    kind = "DAYLIGHT" if local.dst() else "STANDARD"
    offset = format_offset(local.utcoffset())
    return [
        "BEGIN:VTIMEZONE",
        f"TZID:{tz_name}",
        f"BEGIN:{kind}",
        "DTSTART:19700101T000000",
        f"TZOFFSETFROM:{offset}",
        f"TZOFFSETTO:{offset}",
        f"TZNAME:{local.tzname()}",
        f"END:{kind}",
        "END:VTIMEZONE",
    ]


def build_icalendar(
    appointment: Appointment,
    now: Optional[datetime] = None,
    tz_name: str = BUSINESS_TIMEZONE,
    uid_domain: str = ICAL_UID_DOMAIN,
) -> str:
    """
    Render one appointment as a VCALENDAR with a single VEVENT.

    DTSTART/DTEND are business-local with a TZID that a VTIMEZONE block defines;
    without an end time the event lasts one hour.

    Raises:
        ConstraintError: NOT_SCHEDULED when the appointment has no date + start time
    """
    if not appointment.date or not appointment.start_time:
        raise ConstraintError("Appointment has no scheduled date and time yet", code="NOT_SCHEDULED")

    start = datetime.combine(appointment.date, _parse_time(appointment.start_time))
    if appointment.end_time:
        end = datetime.combine(appointment.date, _parse_time(appointment.end_time))
    else:
        end = start + DEFAULT_DURATION

    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "CALSCALE:GREGORIAN",
        "METHOD:PUBLISH",
        *build_vtimezone(tz_name, start),
        "BEGIN:VEVENT",
        f"UID:{appointment.id}@{uid_domain}",
        f"DTSTAMP:{stamp.strftime('%Y%m%dT%H%M%SZ')}",
        f"DTSTART;TZID={tz_name}:{start.strftime('%Y%m%dT%H%M%S')}",
        f"DTEND;TZID={tz_name}:{end.strftime('%Y%m%dT%H%M%S')}",
        f"SUMMARY:{escape_text(appointment.title)}",
        f"DESCRIPTION:{escape_text(appointment.description)}",
        f"LOCATION:{escape_text(format_location(appointment.location))}",
        f"STATUS:{'CONFIRMED' if appointment.status == 'confirmed' else 'TENTATIVE'}",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(lines) + "\r\n"
