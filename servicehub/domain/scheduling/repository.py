"""Appointment repository - Database operations for appointments"""

import math
from datetime import date
from typing import Optional

from sqlalchemy.orm import Query, Session, joinedload

from ...models import ADMIN_ROLES, ROBBY_MANAGER, SERVICE_MANAGER
from ...models_appointment import Appointment

PROPERTY_VIEWING = "property_viewing"


class AppointmentRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_by_id(db: Session, appointment_id: int, with_people: bool = False) -> Optional[Appointment]:
        query = db.query(Appointment)
        if with_people:
            query = query.options(
                joinedload(Appointment.customer),
                joinedload(Appointment.assignee),
                joinedload(Appointment.registrant),
                joinedload(Appointment.questioner),
            )
        return query.filter(Appointment.id == appointment_id).first()

    @staticmethod
    def create(db: Session, **data) -> Appointment:
        """Create an appointment and commit"""
        appointment = Appointment(**data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def conditional_update(
        db: Session, appointment_id: int, expected_statuses: list[str], values: dict, *conditions
    ) -> bool:
        """
        UPDATE ... WHERE id = ? AND status IN (expected) [AND conditions].

        Returns True when the row was updated; False means the row changed since it
        was read. Does not commit.
        """
        updated = (
            db.query(Appointment)
            .filter(
                Appointment.id == appointment_id,
                Appointment.status.in_(expected_statuses),
                *conditions,
            )
            .update(values, synchronize_session=False)
        )
        return updated == 1

    # Queries

    @staticmethod
    def scope_by_role(query: Query, role: str, type_filter: Optional[str] = None) -> Query:
        """
        Restrict a staff listing to the appointment types the role handles.
        robby_manager: property viewings only; service_manager: everything else;
        admins: everything, optionally filtered by type.
        """
        if role == ROBBY_MANAGER:
            query = query.filter(Appointment.type == PROPERTY_VIEWING)
        elif role == SERVICE_MANAGER:
            query = query.filter(Appointment.type != PROPERTY_VIEWING)

        if type_filter and role in ADMIN_ROLES:
            query = query.filter(Appointment.type == type_filter)

        return query

    @staticmethod
    def paginate(query: Query, page: int, limit: int) -> tuple[list[Appointment], dict]:
        total = query.order_by(None).count()
        rows = query.offset((page - 1) * limit).limit(limit).all()
        return rows, {
            "total": total,
            "page": page,
            "limit": limit,
            "totalPages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def user_appointments_query(
        db: Session,
        customer_id: int,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        status: Optional[str] = None,
        type_filter: Optional[str] = None,
    ) -> Query:
        query = (
            db.query(Appointment)
            .options(joinedload(Appointment.assignee))
            .filter(Appointment.customer_id == customer_id)
        )
        if from_date:
            query = query.filter(Appointment.date >= from_date)
        if to_date:
            query = query.filter(Appointment.date <= to_date)
        if status:
            query = query.filter(Appointment.status == status)
        if type_filter:
            query = query.filter(Appointment.type == type_filter)

        return query.order_by(Appointment.date.asc(), Appointment.start_time.asc(), Appointment.id.asc())

    @staticmethod
    def requests_query(
        db: Session, role: str, status: Optional[str] = None, type_filter: Optional[str] = None
    ) -> Query:
        query = db.query(Appointment).options(
            joinedload(Appointment.customer), joinedload(Appointment.assignee)
        )
        query = AppointmentRepository.scope_by_role(query, role, type_filter)

        if status:
            query = query.filter(Appointment.status == status)
        else:
            query = query.filter(Appointment.status.in_(["pending", "proposed"]))

        return query.order_by(Appointment.created_at.desc(), Appointment.id.desc())

    @staticmethod
    def confirmed_query(db: Session, role: str, registered: bool, type_filter: Optional[str] = None) -> Query:
        """Confirmed appointments, either already registered (ongoing) or still unregistered"""
        query = db.query(Appointment).options(
            joinedload(Appointment.customer),
            joinedload(Appointment.assignee),
            joinedload(Appointment.registrant),
        )
        query = AppointmentRepository.scope_by_role(query, role, type_filter)
        query = query.filter(Appointment.status == "confirmed")

        if registered:
            query = query.filter(Appointment.registered_by.isnot(None))
        else:
            query = query.filter(Appointment.registered_by.is_(None))

        return query.order_by(Appointment.date.asc(), Appointment.start_time.asc(), Appointment.id.asc())
