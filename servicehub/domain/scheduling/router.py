"""Appointment router - FastAPI endpoints for the appointment negotiation workflow"""

import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ...auth import get_current_staff, get_current_user
from ...database import get_db
from ...models import User
from ...models_appointment import APPOINTMENT_STATUSES, APPOINTMENT_TYPES, Appointment
from ...shared.clock import utc_now
from ...shared.errors import ValidationError
from .schemas import (
    AnswerCreate,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentReschedule,
    AppointmentResponse,
    ProposalCreate,
    ProposalResponse,
    QuestionCreate,
    UserSummary,
)
from .service import AppointmentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_appointment_service(
    db: Session = Depends(get_db), now: datetime = Depends(utc_now)
) -> AppointmentService:
    """Dependency injection for AppointmentService"""
    return AppointmentService(db, clock=lambda: now)


def _user_summary(user: Optional[User]) -> Optional[UserSummary]:
    if not user:
        return None
    return UserSummary(
        id=user.id,
        firstName=user.first_name,
        lastName=user.last_name,
        email=user.email,
        role=user.role,
    )


def appointment_to_response(a: Appointment, include_people: bool = False) -> dict:
    response = AppointmentResponse(
        id=a.id,
        customerId=a.customer_id,
        assignedStaffId=a.assigned_staff_id,
        ticketId=a.ticket_id,
        title=a.title,
        description=a.description,
        type=a.type,
        location=a.location,
        date=a.date,
        startTime=a.start_time,
        endTime=a.end_time,
        status=a.status,
        proposedText=a.proposed_text,
        customerNote=a.customer_note,
        reminderSent24h=a.reminder_sent_24h,
        reminderSent1h=a.reminder_sent_1h,
        registeredBy=a.registered_by,
        registeredAt=a.registered_at,
        staffQuestion=a.staff_question,
        staffQuestionAt=a.staff_question_at,
        staffQuestionBy=a.staff_question_by,
        cancelReason=a.cancel_reason,
        cancelledAt=a.cancelled_at,
        rescheduledFrom=a.rescheduled_from,
        createdAt=a.created_at,
        updatedAt=a.updated_at,
    )
    if include_people:
        response.customer = _user_summary(a.customer)
        response.assignee = _user_summary(a.assignee)
        response.registrant = _user_summary(a.registrant)
        response.questioner = _user_summary(a.questioner)
    return response.model_dump(mode="json", exclude_none=False)


def _check_filters(status: Optional[str], type_filter: Optional[str]) -> None:
    if status and status not in APPOINTMENT_STATUSES:
        raise ValidationError(f"Invalid status. Must be one of: {', '.join(APPOINTMENT_STATUSES)}")
    if type_filter and type_filter not in APPOINTMENT_TYPES:
        raise ValidationError(f"Invalid type. Must be one of: {', '.join(APPOINTMENT_TYPES)}")


def _page(rows: list[Appointment], pagination: dict, include_people: bool = False) -> dict:
    return {
        "success": True,
        "data": [appointment_to_response(a, include_people) for a in rows],
        "pagination": pagination,
    }


# ============================================================================
# LISTINGS
# ============================================================================


@router.get("")
async def get_appointments(
    from_date: Optional[date] = Query(None, alias="from"),
    to_date: Optional[date] = Query(None, alias="to"),
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointments of the current user, ordered by date and start time"""
    _check_filters(status, type)
    rows, pagination = service.list_user_appointments(current_user, from_date, to_date, status, type, page, limit)
    return _page(rows, pagination)


@router.get("/requests")
async def get_appointment_requests(
    status: Optional[str] = Query(None),
    type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Open requests visible to the staff member's role"""
    _check_filters(status, type)
    rows, pagination = service.list_requests(current_user, status, type, page, limit)
    return _page(rows, pagination, include_people=True)


@router.get("/ongoing")
async def get_ongoing_appointments(
    type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirmed and registered appointments"""
    _check_filters(None, type)
    rows, pagination = service.list_ongoing(current_user, type, page, limit)
    return _page(rows, pagination, include_people=True)


@router.get("/unregistered")
async def get_unregistered_appointments(
    type: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirmed appointments not yet registered"""
    _check_filters(None, type)
    rows, pagination = service.list_unregistered(current_user, type, page, limit)
    return _page(rows, pagination, include_people=True)


# ============================================================================
# CUSTOMER OPERATIONS
# ============================================================================


@router.post("", status_code=201)
async def create_appointment(
    data: AppointmentCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Create an appointment request, or a dated booking"""
    appointment = service.create(current_user, data)
    return {
        "success": True,
        "message": "Appointment created successfully",
        "data": appointment_to_response(appointment),
    }


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Appointment details with the people involved"""
    appointment = service.get_by_id(appointment_id, current_user)
    return {"success": True, "data": appointment_to_response(appointment, include_people=True)}


@router.put("/{appointment_id}")
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Move an appointment to a new slot; returns the new record"""
    appointment = service.reschedule(appointment_id, current_user, data)
    return {
        "success": True,
        "message": "Appointment rescheduled successfully",
        "data": appointment_to_response(appointment),
    }


@router.delete("/{appointment_id}")
async def cancel_appointment(
    appointment_id: int,
    data: Optional[AppointmentCancel] = None,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Cancel an appointment"""
    appointment = service.cancel(appointment_id, current_user, data.cancelReason if data else None)
    return {
        "success": True,
        "message": "Appointment cancelled successfully",
        "data": appointment_to_response(appointment),
    }


@router.post("/{appointment_id}/respond")
async def respond_to_proposal(
    appointment_id: int,
    data: ProposalResponse,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Accept or decline a staff proposal"""
    appointment = service.respond(appointment_id, current_user, data.accept, data.message)
    return {
        "success": True,
        "message": "Proposal accepted" if data.accept else "Proposal declined",
        "data": appointment_to_response(appointment),
    }


@router.post("/{appointment_id}/answer")
async def answer_question(
    appointment_id: int,
    data: AnswerCreate,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Answer a staff question"""
    appointment = service.answer_question(appointment_id, current_user, data.answer)
    return {
        "success": True,
        "message": "Answer sent",
        "data": appointment_to_response(appointment),
    }


@router.get("/{appointment_id}/ical")
async def download_ical(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Download the appointment as an .ics file"""
    content = service.get_icalendar_export(appointment_id, current_user)
    return Response(
        content=content,
        media_type="text/calendar; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="appointment-{appointment_id}.ics"'},
    )


# ============================================================================
# STAFF OPERATIONS
# ============================================================================


@router.post("/{appointment_id}/confirm")
async def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Confirm a pending or proposed appointment"""
    appointment = service.confirm(appointment_id, current_user)
    return {
        "success": True,
        "message": "Appointment confirmed successfully",
        "data": appointment_to_response(appointment),
    }


@router.post("/{appointment_id}/propose")
async def propose_date(
    appointment_id: int,
    data: ProposalCreate,
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Propose a date with a free-text note"""
    appointment = service.propose(appointment_id, current_user, data.date, data.proposedText)
    return {
        "success": True,
        "message": "Proposal sent",
        "data": appointment_to_response(appointment),
    }


@router.post("/{appointment_id}/register")
async def register_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Mark a confirmed appointment as entered into the calendar"""
    appointment = service.register(appointment_id, current_user)
    return {
        "success": True,
        "message": "Appointment registered",
        "data": appointment_to_response(appointment),
    }


@router.post("/{appointment_id}/question")
async def ask_question(
    appointment_id: int,
    data: QuestionCreate,
    current_user: User = Depends(get_current_staff),
    service: AppointmentService = Depends(get_appointment_service),
):
    """Ask the customer a follow-up question"""
    appointment = service.ask_question(appointment_id, current_user, data.question)
    return {
        "success": True,
        "message": "Question sent",
        "data": appointment_to_response(appointment),
    }
