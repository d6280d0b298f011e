"""
Business Calendar Models
Weekly opening-hour templates per season and holiday overrides
"""

from sqlalchemy import JSON, Boolean, Column, Date, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base

SEASONS = ["standard", "winter"]


class OpeningHour(Base):
    """Opening hours for one weekday in one season"""

    __tablename__ = "opening_hours"
    __table_args__ = (UniqueConstraint("day_of_week", "season", name="uq_opening_hours_day_season"),)

    id = Column(Integer, primary_key=True, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday ... 6 = Saturday
    season = Column(String(20), nullable=False)  # standard, winter
    is_closed = Column(Boolean, default=False, nullable=False)
    periods = Column(JSON, default=list, nullable=False)  # [{"open": "08:00", "close": "13:00"}]

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Holiday(Base):
    """Closed day or day with special hours; recurring holidays repeat every year on the same month-day"""

    __tablename__ = "holidays"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    is_closed = Column(Boolean, default=True, nullable=False)
    special_hours = Column(JSON, nullable=True)  # Only used when is_closed is False
    is_recurring = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
