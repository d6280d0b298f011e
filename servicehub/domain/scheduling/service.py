"""
Appointment service - negotiation state machine and queries

pending ──propose──▶ proposed ──accept──▶ confirmed ──register──▶ confirmed (registered)
   ▲                    │
   └──────decline───────┘
pending/proposed ──confirm──▶ confirmed
any open status ──reschedule──▶ rescheduled (+ new pending record)
any status but cancelled ──cancel──▶ cancelled

Every transition is written with a conditional UPDATE on the expected status, so a
concurrent change (e.g. customer accepts while staff cancels) is detected instead of
overwritten. Notifications are sent after the commit and never undo a transition.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import ADMIN_ROLES, ROBBY_MANAGER, SERVICE_MANAGER, User
from ...models_appointment import APPOINTMENT_STATUSES, TERMINAL_STATUSES, Appointment
from ...services.notification_service import Notifier
from ...services.user_directory import UserDirectory
from ...shared.errors import AuthorizationError, NotFoundError, StateError, ValidationError
from ...shared.validators import time_to_minutes
from ..calendar.opening_hours import OpeningHoursResolver
from ..calendar.repository import CalendarStore
from .availability import AvailabilityValidator
from .ical import build_icalendar
from .repository import PROPERTY_VIEWING, AppointmentRepository
from .schemas import AppointmentCreate, AppointmentReschedule

logger = logging.getLogger(__name__)

OPEN_STATUSES = ["pending", "proposed", "confirmed"]
CANCELLABLE_STATUSES = [s for s in APPOINTMENT_STATUSES if s != "cancelled"]

# Staff roles notified about new requests, by appointment type (admins always)
REQUEST_ROUTING = {PROPERTY_VIEWING: [ROBBY_MANAGER]}
DEFAULT_REQUEST_ROLES = [SERVICE_MANAGER]


def request_roles_for(appointment_type: str) -> list[str]:
    """Staff roles that handle new requests of this type"""
    return list(ADMIN_ROLES) + REQUEST_ROUTING.get(appointment_type, DEFAULT_REQUEST_ROLES)


class AppointmentService:
    """Service layer for appointment negotiation"""

    def __init__(
        self,
        db: Session,
        notifier: Optional[Notifier] = None,
        resolver: Optional[OpeningHoursResolver] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.repo = AppointmentRepository()
        self.notifier = notifier or Notifier(db)
        self.resolver = resolver or OpeningHoursResolver(CalendarStore(db))
        self.validator = AvailabilityValidator(self.resolver)
        self.directory = UserDirectory(db)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        return self.clock()

    def _timestamp(self) -> datetime:
        """Naive UTC timestamp for DateTime columns"""
        return self._now().astimezone(timezone.utc).replace(tzinfo=None)

    def _load(self, appointment_id: int, with_people: bool = False) -> Appointment:
        appointment = self.repo.get_by_id(self.db, appointment_id, with_people=with_people)
        if not appointment:
            raise NotFoundError("Appointment")
        return appointment

    @staticmethod
    def _require_staff(actor: User) -> None:
        if not actor.is_staff:
            raise AuthorizationError("Only staff can perform this action")

    @staticmethod
    def _require_owner(appointment: Appointment, actor: User, message: str) -> None:
        if appointment.customer_id != actor.id:
            raise AuthorizationError(message)

    @staticmethod
    def _check_time_range(start_time: Optional[str], end_time: Optional[str]) -> None:
        if start_time and end_time and time_to_minutes(end_time) <= time_to_minutes(start_time):
            raise ValidationError("End time must be after start time", code="INVALID_TIME_RANGE")

    def _apply(self, appointment: Appointment, guard: Callable, expected: list[str], values: dict, *conditions):
        """
        Check the guard, then write the change only if the row still matches.
        When the row changed in between, re-read it and raise the error that now applies.
        """
        guard(appointment)
        if self.repo.conditional_update(self.db, appointment.id, expected, values, *conditions):
            return

        self.db.rollback()
        current = self._load(appointment.id)
        logger.warning(f"⚠️ Appointment {appointment.id} changed concurrently (now {current.status})")
        guard(current)
        raise StateError("Appointment was changed in the meantime, please reload and try again")

    def _commit(self, appointment: Appointment) -> Appointment:
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def _notify(self, user_id: Optional[int], title: str, message: str, appointment_id: int) -> None:
        if not user_id:
            return
        try:
            self.notifier.notify(
                user_id,
                title,
                message,
                category="appointment",
                related_id=appointment_id,
                related_type="appointment",
                deep_link=f"appointments/{appointment_id}",
            )
        except Exception as e:
            logger.error(f"❌ Failed to notify user {user_id} about appointment {appointment_id}: {e}")

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_user_appointments(
        self,
        user: User,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        status: Optional[str] = None,
        type_filter: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Appointment], dict]:
        query = self.repo.user_appointments_query(self.db, user.id, from_date, to_date, status, type_filter)
        return self.repo.paginate(query, page, limit)

    def list_requests(
        self, actor: User, status: Optional[str] = None, type_filter: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Appointment], dict]:
        """Open requests for staff, pending + proposed unless a status is given"""
        self._require_staff(actor)
        query = self.repo.requests_query(self.db, actor.role, status, type_filter)
        return self.repo.paginate(query, page, limit)

    def list_ongoing(
        self, actor: User, type_filter: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Appointment], dict]:
        """Confirmed appointments already entered into the operational calendar"""
        self._require_staff(actor)
        query = self.repo.confirmed_query(self.db, actor.role, registered=True, type_filter=type_filter)
        return self.repo.paginate(query, page, limit)

    def list_unregistered(
        self, actor: User, type_filter: Optional[str] = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Appointment], dict]:
        """Confirmed appointments staff still has to enter"""
        self._require_staff(actor)
        query = self.repo.confirmed_query(self.db, actor.role, registered=False, type_filter=type_filter)
        return self.repo.paginate(query, page, limit)

    def get_by_id(self, appointment_id: int, actor: User) -> Appointment:
        appointment = self._load(appointment_id, with_people=True)
        if appointment.customer_id != actor.id and not actor.is_staff:
            raise AuthorizationError("You can only view your own appointments")
        return appointment

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def create(self, actor: User, data: AppointmentCreate) -> Appointment:
        """
        Create a customer request (no date) or a booking with date + start time.
        Dated bookings are validated against the calendar; dateless requests notify
        the staff responsible for the appointment type.
        """
        customer_id = actor.id
        if data.customerId and data.customerId != actor.id:
            self._require_staff(actor)
            if not self.directory.find_by_id(data.customerId):
                raise NotFoundError("Customer")
            customer_id = data.customerId

        if (data.date is None) != (data.startTime is None):
            raise ValidationError("date and startTime must be provided together")
        if data.endTime and not data.startTime:
            raise ValidationError("endTime requires a startTime")
        self._check_time_range(data.startTime, data.endTime)

        if data.date:
            self.validator.validate_booking(
                data.date, data.startTime, data.endTime, is_staff_actor=actor.is_staff, now=self._now()
            )

        appointment = self.repo.create(
            self.db,
            customer_id=customer_id,
            title=data.title,
            description=data.description,
            type=data.type,
            date=data.date,
            start_time=data.startTime,
            end_time=data.endTime,
            ticket_id=data.ticketId,
            status="pending",
        )
        logger.info(f"📅 Appointment {appointment.id} created for customer {customer_id} by user {actor.id}")

        if not data.date:
            self._notify_new_request(appointment)

        return appointment

    def _notify_new_request(self, appointment: Appointment) -> None:
        try:
            customer = self.directory.find_by_id(appointment.customer_id)
            staff = self.directory.find_by_roles(request_roles_for(appointment.type))
        except Exception as e:
            self.db.rollback()
            logger.error(f"❌ Failed to look up staff for appointment request {appointment.id}: {e}")
            return

        name = self.directory.display_name(customer)
        for member in staff:
            self._notify(
                member.id,
                "New appointment request",
                f'{name} submitted an appointment request: "{appointment.title}" ({appointment.type})',
                appointment.id,
            )
        logger.info(f"🔔 Notified {len(staff)} staff member(s) about request {appointment.id}")

    def propose(self, appointment_id: int, actor: User, proposed_date: date, proposed_text: str) -> Appointment:
        """Staff proposes a date with a free-text note; the time of day is cleared"""
        self._require_staff(actor)
        appointment = self._load(appointment_id)

        def guard(a: Appointment):
            if a.status != "pending":
                raise StateError("A proposal can only be made for pending requests")

        guard(appointment)
        self.validator.validate_proposal_date(proposed_date, now=self._now())

        self._apply(
            appointment,
            guard,
            ["pending"],
            {
                "date": proposed_date,
                "proposed_text": proposed_text,
                "start_time": None,
                "end_time": None,
                "status": "proposed",
                "assigned_staff_id": func.coalesce(Appointment.assigned_staff_id, actor.id),
            },
        )
        self._commit(appointment)
        logger.info(f"📅 Date {proposed_date} proposed for appointment {appointment.id} by staff {actor.id}")

        self._notify(
            appointment.customer_id,
            "Appointment proposal received",
            f'For your request "{appointment.title}" we propose {proposed_date.isoformat()}: {proposed_text}',
            appointment.id,
        )
        return appointment

    def respond(self, appointment_id: int, actor: User, accept: bool, message: Optional[str] = None) -> Appointment:
        """Customer accepts (confirmed) or declines (back to pending, proposal cleared)"""
        appointment = self._load(appointment_id)
        self._require_owner(appointment, actor, "You can only respond to proposals for your own appointments")

        def guard(a: Appointment):
            if a.status != "proposed":
                raise StateError("There is no proposal to respond to")

        message = message.strip() if message else None

        if accept:
            values = {"status": "confirmed", "customer_note": message}
        else:
            values = {
                "status": "pending",
                "date": None,
                "start_time": None,
                "end_time": None,
                "proposed_text": None,
            }

        proposed_date = appointment.date
        self._apply(appointment, guard, ["proposed"], values)
        self._commit(appointment)

        if accept:
            logger.info(f"✅ Proposal accepted for appointment {appointment.id}")
            note = f" Customer note: {message}" if message else ""
            self._notify(
                appointment.assigned_staff_id,
                "Proposal accepted",
                f'The customer confirmed "{appointment.title}" on {appointment.date}.{note}',
                appointment.id,
            )
        else:
            logger.info(f"↩️ Proposal declined for appointment {appointment.id}")
            note = f" Message: {message}" if message else ""
            self._notify(
                appointment.assigned_staff_id,
                "Proposal declined",
                f'The customer declined the proposal of {proposed_date} for "{appointment.title}".{note}',
                appointment.id,
            )

        return appointment

    def confirm(self, appointment_id: int, actor: User) -> Appointment:
        """Staff confirms directly from pending or proposed"""
        self._require_staff(actor)
        appointment = self._load(appointment_id)

        def guard(a: Appointment):
            if a.status not in ("pending", "proposed"):
                raise StateError(f"Appointment cannot be confirmed (current status: {a.status})")

        self._apply(
            appointment,
            guard,
            ["pending", "proposed"],
            {
                "status": "confirmed",
                "assigned_staff_id": func.coalesce(Appointment.assigned_staff_id, actor.id),
            },
        )
        self._commit(appointment)
        logger.info(f"✅ Appointment {appointment.id} confirmed by staff {actor.id}")

        when = ""
        if appointment.date:
            when = f" on {appointment.date}"
            if appointment.start_time:
                when += f" at {appointment.start_time}"
        self._notify(
            appointment.customer_id,
            "Appointment confirmed",
            f'Your appointment "{appointment.title}"{when} has been confirmed.',
            appointment.id,
        )
        return appointment

    def register(self, appointment_id: int, actor: User) -> Appointment:
        """Staff marks a confirmed appointment as entered into the operational calendar (once)"""
        self._require_staff(actor)
        appointment = self._load(appointment_id)

        def guard(a: Appointment):
            if a.status != "confirmed":
                raise StateError("Only confirmed appointments can be registered")
            if a.registered_by is not None:
                raise StateError("Appointment has already been registered", code="ALREADY_REGISTERED")

        self._apply(
            appointment,
            guard,
            ["confirmed"],
            {"registered_by": actor.id, "registered_at": self._timestamp()},
            Appointment.registered_by.is_(None),
        )
        self._commit(appointment)
        logger.info(f"📋 Appointment {appointment.id} registered by staff {actor.id}")
        return appointment

    def ask_question(self, appointment_id: int, actor: User, question: str) -> Appointment:
        """Staff attaches a follow-up question; status is unchanged"""
        self._require_staff(actor)
        appointment = self._load(appointment_id)

        def guard(a: Appointment):
            if a.status in TERMINAL_STATUSES:
                raise StateError(f"Questions are not possible for {a.status} appointments")

        self._apply(
            appointment,
            guard,
            OPEN_STATUSES,
            {
                "staff_question": question,
                "staff_question_at": self._timestamp(),
                "staff_question_by": actor.id,
            },
        )
        self._commit(appointment)
        logger.info(f"❓ Staff {actor.id} asked a question on appointment {appointment.id}")

        staff_name = self.directory.display_name(actor, fallback="A staff member")
        self._notify(
            appointment.customer_id,
            "Question about your appointment",
            f'{staff_name} has a question about "{appointment.title}": {question}',
            appointment.id,
        )
        return appointment

    def answer_question(self, appointment_id: int, actor: User, answer: str) -> Appointment:
        """Customer answers the staff question; the answer replaces the customer note"""
        appointment = self._load(appointment_id)
        self._require_owner(appointment, actor, "You can only answer questions on your own appointments")

        def guard(a: Appointment):
            if a.status in TERMINAL_STATUSES:
                raise StateError(f"Questions are not possible for {a.status} appointments")
            if not a.staff_question:
                raise StateError("There is no question to answer", code="NO_QUESTION")

        self._apply(
            appointment,
            guard,
            OPEN_STATUSES,
            {"customer_note": answer},
            Appointment.staff_question.isnot(None),
        )
        self._commit(appointment)
        logger.info(f"💬 Customer {actor.id} answered the question on appointment {appointment.id}")

        customer_name = self.directory.display_name(actor, fallback="The customer")
        self._notify(
            appointment.staff_question_by or appointment.assigned_staff_id,
            "Answer to your question",
            f'{customer_name} answered your question about "{appointment.title}": {answer}',
            appointment.id,
        )
        return appointment

    def reschedule(self, appointment_id: int, actor: User, data: AppointmentReschedule) -> Appointment:
        """
        Move an appointment to a new slot.

        The current record becomes `rescheduled` and keeps its date; a new pending
        record carries the details forward with rescheduled_from set.
        """
        existing = self._load(appointment_id)
        self._require_owner(existing, actor, "You can only reschedule your own appointments")

        def guard(a: Appointment):
            if a.status == "cancelled":
                raise StateError("Cancelled appointments cannot be rescheduled", code="ALREADY_CANCELLED")
            if a.status in TERMINAL_STATUSES:
                raise StateError(f"Appointment cannot be rescheduled (current status: {a.status})")

        guard(existing)
        previous_title = existing.title
        self._check_time_range(data.startTime, data.endTime)
        self.validator.validate_booking(
            data.date, data.startTime, data.endTime, is_staff_actor=actor.is_staff, now=self._now()
        )

        self._apply(existing, guard, OPEN_STATUSES, {"status": "rescheduled"})

        replacement = Appointment(
            customer_id=existing.customer_id,
            title=data.title or existing.title,
            description=data.description or existing.description,
            type=data.type or existing.type,
            location=existing.location,
            date=data.date,
            start_time=data.startTime,
            end_time=data.endTime,
            ticket_id=existing.ticket_id,
            assigned_staff_id=existing.assigned_staff_id,
            rescheduled_from=existing.id,
            status="pending",
        )
        self.db.add(replacement)
        self._commit(replacement)
        logger.info(f"🔁 Appointment {existing.id} rescheduled to {replacement.id} ({data.date} {data.startTime})")

        self._notify(
            replacement.assigned_staff_id,
            "Appointment rescheduled",
            f'The appointment "{previous_title}" was moved to {data.date} at {data.startTime}.',
            replacement.id,
        )
        return replacement

    def cancel(self, appointment_id: int, actor: User, reason: Optional[str] = None) -> Appointment:
        appointment = self._load(appointment_id)
        self._require_owner(appointment, actor, "You can only cancel your own appointments")

        def guard(a: Appointment):
            if a.status == "cancelled":
                raise StateError("Appointment is already cancelled", code="ALREADY_CANCELLED")

        reason = reason.strip() if reason else None
        self._apply(
            appointment,
            guard,
            CANCELLABLE_STATUSES,
            {"status": "cancelled", "cancelled_at": self._timestamp(), "cancel_reason": reason},
        )
        self._commit(appointment)
        logger.info(f"🚫 Appointment {appointment.id} cancelled by customer {actor.id}")

        when = f" on {appointment.date}" if appointment.date else ""
        note = f" Reason: {reason}" if reason else ""
        self._notify(
            appointment.assigned_staff_id,
            "Appointment cancelled",
            f'The appointment "{appointment.title}"{when} was cancelled by the customer.{note}',
            appointment.id,
        )
        return appointment

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def get_icalendar_export(self, appointment_id: int, actor: User) -> str:
        """iCalendar document for an appointment visible to the actor"""
        appointment = self.get_by_id(appointment_id, actor)
        return build_icalendar(appointment, now=self._now())
