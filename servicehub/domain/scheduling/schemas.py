"""Scheduling domain schemas - Pydantic models for appointment requests and responses"""

import datetime as dt
from typing import Optional

from pydantic import BaseModel, field_validator

from ...models_appointment import APPOINTMENT_TYPES
from ...shared.validators import parse_date, validate_time


def _parse_optional_date(v):
    if v in (None, ""):
        return None
    return parse_date(v)


class AppointmentCreate(BaseModel):
    """Schema for creating an appointment (customer request or staff booking)"""

    title: str
    description: Optional[str] = None
    type: str
    date: Optional[dt.date] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    ticketId: Optional[int] = None
    customerId: Optional[int] = None  # Staff booking on behalf of a customer

    @field_validator("title")
    @classmethod
    def validate_title(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Title is required")
        return v

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in APPOINTMENT_TYPES:
            raise ValueError(f"Invalid appointment type. Must be one of: {', '.join(APPOINTMENT_TYPES)}")
        return v

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return _parse_optional_date(v)

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_times(cls, v):
        if v:
            return validate_time(v)
        return None


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to a new slot"""

    date: dt.date
    startTime: str
    endTime: Optional[str] = None
    title: Optional[str] = None
    description: Optional[str] = None
    type: Optional[str] = None

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return parse_date(v)

    @field_validator("startTime")
    @classmethod
    def validate_start(cls, v):
        return validate_time(v)

    @field_validator("endTime")
    @classmethod
    def validate_end(cls, v):
        if v:
            return validate_time(v)
        return None

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v and v not in APPOINTMENT_TYPES:
            raise ValueError(f"Invalid appointment type. Must be one of: {', '.join(APPOINTMENT_TYPES)}")
        return v


class AppointmentCancel(BaseModel):
    cancelReason: Optional[str] = None


class ProposalCreate(BaseModel):
    """Schema for a staff proposal: a date plus free text, no time of day"""

    date: dt.date
    proposedText: str

    @field_validator("date", mode="before")
    @classmethod
    def validate_date(cls, v):
        return parse_date(v)

    @field_validator("proposedText")
    @classmethod
    def validate_text(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Proposal text is required")
        return v


class ProposalResponse(BaseModel):
    accept: bool
    message: Optional[str] = None


class QuestionCreate(BaseModel):
    question: str

    @field_validator("question")
    @classmethod
    def validate_question(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Question is required")
        return v


class AnswerCreate(BaseModel):
    answer: str

    @field_validator("answer")
    @classmethod
    def validate_answer(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Answer is required")
        return v


class UserSummary(BaseModel):
    id: int
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: int
    customerId: int
    assignedStaffId: Optional[int] = None
    ticketId: Optional[int] = None
    title: str
    description: Optional[str] = None
    type: str
    location: Optional[dict] = None
    date: Optional[dt.date] = None
    startTime: Optional[str] = None
    endTime: Optional[str] = None
    status: str
    proposedText: Optional[str] = None
    customerNote: Optional[str] = None
    reminderSent24h: bool = False
    reminderSent1h: bool = False
    registeredBy: Optional[int] = None
    registeredAt: Optional[dt.datetime] = None
    staffQuestion: Optional[str] = None
    staffQuestionAt: Optional[dt.datetime] = None
    staffQuestionBy: Optional[int] = None
    cancelReason: Optional[str] = None
    cancelledAt: Optional[dt.datetime] = None
    rescheduledFrom: Optional[int] = None
    createdAt: Optional[dt.datetime] = None
    updatedAt: Optional[dt.datetime] = None
    customer: Optional[UserSummary] = None
    assignee: Optional[UserSummary] = None
    registrant: Optional[UserSummary] = None
    questioner: Optional[UserSummary] = None


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int
