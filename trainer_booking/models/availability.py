"""Availability model definitions."""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    Enum as SqlEnum,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)

from trainer_booking.core.calendar import DayOfWeek
from trainer_booking.database import Base


class AvailabilityWindow(Base):
    """A recurring weekly block of bookable hours for one day of the week."""
    __tablename__ = "availability_windows"

    id = Column(Integer, primary_key=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False, index=True)
    day_of_week = Column(SqlEnum(DayOfWeek, native_enum=False, length=16), nullable=False)
    start_time = Column(String(5), nullable=False)  # HH:MM
    end_time = Column(String(5), nullable=False)  # HH:MM
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("start_time < end_time", name="availability_window_valid"),
    )


class BlockedDate(Base):
    """A calendar date fully excluded from booking."""
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("trainer_id", "date", name="uniq_trainer_blocked_date"),
    )
