"""
Appointment Model for customer requests and staff bookings
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import BUSINESS_ADDRESS, BUSINESS_NAME
from .database import Base

APPOINTMENT_TYPES = [
    "service",
    "pickup",
    "delivery",
    "inspection",
    "consultation",
    "repair",
    "property_viewing",
    "other",
]

APPOINTMENT_STATUSES = ["pending", "proposed", "confirmed", "cancelled", "completed", "rescheduled"]

# No transition leaves these states
TERMINAL_STATUSES = ["cancelled", "completed", "rescheduled"]


def default_location():
    return {"name": BUSINESS_NAME, "address": BUSINESS_ADDRESS}


class Appointment(Base):
    """Appointment negotiated between a customer and staff"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True, index=True)

    # Relationships
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    assigned_staff_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    ticket_id = Column(Integer, nullable=True)  # Originating ticket, informational only

    # Details
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    type = Column(String(50), nullable=False, index=True)
    location = Column(JSON, default=default_location, nullable=True)

    # Scheduling (business-local date and HH:MM times)
    date = Column(Date, nullable=True, index=True)
    start_time = Column(String(5), nullable=True)
    end_time = Column(String(5), nullable=True)

    # Status workflow: pending → proposed → confirmed → (registered)
    # pending: open customer request (no date) or staff booking with date + time
    # proposed: staff attached a date and a free-text note, time cleared
    # confirmed: date is binding
    # cancelled / completed / rescheduled: terminal
    status = Column(String(20), default="pending", nullable=False, index=True)

    # Negotiation
    proposed_text = Column(Text, nullable=True)
    customer_note = Column(Text, nullable=True)

    # Reminder flags, one per horizon
    reminder_sent_24h = Column(Boolean, default=False, nullable=False)
    reminder_sent_1h = Column(Boolean, default=False, nullable=False)

    # Registration - staff entered the appointment into the operational calendar
    registered_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    registered_at = Column(DateTime, nullable=True)

    # Staff follow-up question, answered via customer_note
    staff_question = Column(Text, nullable=True)
    staff_question_at = Column(DateTime, nullable=True)
    staff_question_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    # Cancellation
    cancel_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # History link to the appointment this one replaces (not owned, never cascaded)
    rescheduled_from = Column(Integer, nullable=True, index=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    customer = relationship("User", foreign_keys=[customer_id])
    assignee = relationship("User", foreign_keys=[assigned_staff_id])
    registrant = relationship("User", foreign_keys=[registered_by])
    questioner = relationship("User", foreign_keys=[staff_question_by])
