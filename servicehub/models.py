"""
Collaborator tables read and written by the appointment engine.
Users, notifications and push tokens are owned by other parts of the system;
only the columns the engine touches are mapped here.
"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Roles
SUPER_ADMIN = "super_admin"
ADMIN = "admin"
SERVICE_MANAGER = "service_manager"
ROBBY_MANAGER = "robby_manager"
BIKE_MANAGER = "bike_manager"
CLEANING_MANAGER = "cleaning_manager"
MOTOR_MANAGER = "motor_manager"
CUSTOMER = "customer"

ADMIN_ROLES = [ADMIN, SUPER_ADMIN]
# Roles allowed to negotiate appointments on behalf of the business
STAFF_ROLES = [ADMIN, SUPER_ADMIN, SERVICE_MANAGER, ROBBY_MANAGER]


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    username = Column(String(100), nullable=True)
    role = Column(String(50), default=CUSTOMER, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    push_tokens = relationship("PushToken", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(50), default="appointment_reminder", nullable=False)
    category = Column(String(50), nullable=True)
    deep_link = Column(String(255), nullable=True)
    related_id = Column(Integer, nullable=True)
    related_type = Column(String(50), nullable=True)
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class PushToken(Base):
    """Expo push token registered by a mobile device"""

    __tablename__ = "push_tokens"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    token = Column(String(255), unique=True, nullable=False)
    platform = Column(String(20), nullable=True)  # ios, android
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="push_tokens")
