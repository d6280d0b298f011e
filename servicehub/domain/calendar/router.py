"""Settings router - opening hours and holidays"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_admin
from ...database import get_db
from ...models import User
from ...shared.clock import utc_now
from .opening_hours import OpeningHoursResolver, get_season
from .repository import CalendarStore
from .schemas import HolidayCreate, HolidayResponse, OpeningHoursUpdate, OpeningStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


def get_calendar_store(db: Session = Depends(get_db)) -> CalendarStore:
    """Dependency injection for CalendarStore"""
    return CalendarStore(db)


def get_resolver(store: CalendarStore = Depends(get_calendar_store)) -> OpeningHoursResolver:
    return OpeningHoursResolver(store)


def holiday_to_response(holiday) -> dict:
    return HolidayResponse(
        id=holiday.id,
        date=holiday.date,
        name=holiday.name,
        isClosed=holiday.is_closed,
        specialHours=holiday.special_hours,
        isRecurring=holiday.is_recurring,
    ).model_dump(mode="json")


def status_to_response(status: OpeningStatus) -> dict:
    today = status.today_hours
    next_open = status.next_open
    return {
        "isOpen": status.is_open,
        "currentPeriod": status.current_period.model_dump() if status.current_period else None,
        "nextOpen": (
            {"date": next_open.date.isoformat(), "dayName": next_open.day_name, "time": next_open.time}
            if next_open
            else None
        ),
        "todayHours": {
            "date": today.date.isoformat(),
            "dayName": today.day_name,
            "isClosed": today.is_closed,
            "periods": [p.model_dump() for p in today.periods],
            "isHoliday": today.is_holiday,
            "holidayName": today.holiday_name,
        },
        "season": status.season,
    }


# ============================================================================
# PUBLIC
# ============================================================================


@router.get("/opening-hours")
async def get_opening_hours(
    resolver: OpeningHoursResolver = Depends(get_resolver),
    now: datetime = Depends(utc_now),
):
    """Weekly opening hours for the current season"""
    season = get_season(resolver.today(now))
    return {
        "success": True,
        "data": {"season": season, "schedule": resolver.get_week_schedule(season)},
    }


@router.get("/opening-hours/status")
async def get_opening_status(
    resolver: OpeningHoursResolver = Depends(get_resolver),
    now: datetime = Depends(utc_now),
):
    """Current open/closed status with next open time"""
    status = resolver.get_status(now)
    return {"success": True, "data": status_to_response(status)}


@router.get("/holidays")
async def get_holidays(store: CalendarStore = Depends(get_calendar_store)):
    """List all holidays ordered by date"""
    return {"success": True, "data": [holiday_to_response(h) for h in store.list_holidays()]}


# ============================================================================
# ADMIN
# ============================================================================


@router.put("/opening-hours")
async def update_opening_hours(
    data: OpeningHoursUpdate,
    current_user: User = Depends(get_current_admin),
    store: CalendarStore = Depends(get_calendar_store),
):
    """Create or replace the template for one weekday of a season"""
    logger.info(f"📅 User {current_user.id} updating opening hours: {data.season} day {data.dayOfWeek}")
    record = store.upsert_day_schedule(data.dayOfWeek, data.season, data.isClosed, data.periods)
    return {
        "success": True,
        "message": "Opening hours updated successfully",
        "data": {
            "id": record.id,
            "dayOfWeek": record.day_of_week,
            "season": record.season,
            "isClosed": record.is_closed,
            "periods": record.periods,
        },
    }


@router.post("/holidays", status_code=201)
async def add_holiday(
    data: HolidayCreate,
    current_user: User = Depends(get_current_admin),
    store: CalendarStore = Depends(get_calendar_store),
):
    """Add a holiday"""
    holiday = store.add_holiday(
        data.date,
        data.name,
        is_closed=data.isClosed,
        special_hours=data.specialHours,
        is_recurring=data.isRecurring,
    )
    return {
        "success": True,
        "message": "Holiday added successfully",
        "data": holiday_to_response(holiday),
    }


@router.delete("/holidays/{holiday_id}")
async def remove_holiday(
    holiday_id: int,
    current_user: User = Depends(get_current_admin),
    store: CalendarStore = Depends(get_calendar_store),
):
    """Remove a holiday"""
    store.remove_holiday(holiday_id)
    return {"success": True, "message": "Holiday removed successfully"}
