"""Tests for the iCalendar export."""
from datetime import date, datetime, timezone

import pytest

from servicehub.config import BUSINESS_NAME
from servicehub.domain.scheduling.ical import build_icalendar, escape_text, format_location
from servicehub.models_appointment import Appointment
from servicehub.shared.errors import ConstraintError

STAMP = datetime(2026, 2, 16, 9, 0, tzinfo=timezone.utc)


def appointment(**kwargs):
    data = {
        "id": 42,
        "title": "Bike service",
        "description": "Brakes squeak",
        "type": "service",
        "status": "confirmed",
        "date": date(2026, 2, 18),
        "start_time": "10:00",
        "end_time": "11:30",
        "location": {"name": "Workshop", "address": "Hauptstraße 5"},
    }
    data.update(kwargs)
    return Appointment(**data)


def properties(document):
    return [line for line in document.split("\r\n") if line]


def test_document_structure():
    document = build_icalendar(appointment(), now=STAMP, tz_name="Europe/Berlin", uid_domain="example.com")

    assert document.endswith("\r\n")
    lines = properties(document)
    assert lines[0] == "BEGIN:VCALENDAR"
    assert lines[-1] == "END:VCALENDAR"
    assert "VERSION:2.0" in lines
    assert f"PRODID:-//{BUSINESS_NAME}//Appointments//EN" in lines
    assert "UID:42@example.com" in lines
    assert "DTSTAMP:20260216T090000Z" in lines
    assert "DTSTART;TZID=Europe/Berlin:20260218T100000" in lines
    assert "DTEND;TZID=Europe/Berlin:20260218T113000" in lines
    assert "SUMMARY:Bike service" in lines
    assert "DESCRIPTION:Brakes squeak" in lines
    assert "LOCATION:Workshop\\, Hauptstraße 5" in lines
    assert "STATUS:CONFIRMED" in lines
    assert lines.count("BEGIN:VEVENT") == 1


def test_timezone_is_defined_before_the_event():
    lines = properties(build_icalendar(appointment(), now=STAMP, tz_name="Europe/Berlin"))

    start = lines.index("BEGIN:VTIMEZONE")
    assert start < lines.index("BEGIN:VEVENT")
    assert lines[start : start + 9] == [
        "BEGIN:VTIMEZONE",
        "TZID:Europe/Berlin",
        "BEGIN:STANDARD",
        "DTSTART:19700101T000000",
        "TZOFFSETFROM:+0100",
        "TZOFFSETTO:+0100",
        "TZNAME:CET",
        "END:STANDARD",
        "END:VTIMEZONE",
    ]


def test_summer_event_uses_daylight_offset():
    lines = properties(build_icalendar(appointment(date=date(2026, 7, 15)), now=STAMP, tz_name="Europe/Berlin"))

    assert "BEGIN:DAYLIGHT" in lines
    assert "TZOFFSETTO:+0200" in lines
    assert "TZNAME:CEST" in lines
    assert "BEGIN:STANDARD" not in lines


def test_timezone_west_of_utc():
    lines = properties(build_icalendar(appointment(), now=STAMP, tz_name="America/New_York"))

    assert "TZID:America/New_York" in lines
    assert "TZOFFSETTO:-0500" in lines
    assert "DTSTART;TZID=America/New_York:20260218T100000" in lines


def test_default_duration_is_one_hour():
    lines = properties(build_icalendar(appointment(end_time=None), now=STAMP, tz_name="Europe/Berlin"))
    assert "DTEND;TZID=Europe/Berlin:20260218T110000" in lines


def test_default_duration_crosses_midnight():
    lines = properties(build_icalendar(appointment(start_time="23:30", end_time=None), now=STAMP, tz_name="Europe/Berlin"))
    assert "DTEND;TZID=Europe/Berlin:20260219T003000" in lines


@pytest.mark.parametrize("status", ["pending", "proposed"])
def test_unconfirmed_is_tentative(status):
    assert "STATUS:TENTATIVE" in properties(build_icalendar(appointment(status=status), now=STAMP))


def test_text_is_escaped():
    lines = properties(
        build_icalendar(appointment(title="Tyres; rims, etc.", description="Line one\nLine two \\ end"), now=STAMP)
    )
    assert "SUMMARY:Tyres\\; rims\\, etc." in lines
    assert "DESCRIPTION:Line one\\nLine two \\\\ end" in lines


def test_escape_empty():
    assert escape_text(None) == ""
    assert escape_text("") == ""


def test_location_fallbacks():
    assert format_location(None) == BUSINESS_NAME
    assert format_location({"name": "Showroom"}) == "Showroom"


@pytest.mark.parametrize("fields", [{"date": None}, {"start_time": None}])
def test_unscheduled_appointment_cannot_be_exported(fields):
    with pytest.raises(ConstraintError) as exc_info:
        build_icalendar(appointment(**fields), now=STAMP)
    assert exc_info.value.code == "NOT_SCHEDULED"
