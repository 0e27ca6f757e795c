"""Appointment model definitions."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    Enum as SqlEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    text,
)
from sqlalchemy.orm import relationship

from trainer_booking.database import Base, UTCDateTime


class AppointmentStatus(str, Enum):
    PENDING = 'PENDING'
    CONFIRMED = 'CONFIRMED'
    COMPLETED = 'COMPLETED'
    CANCELLED = 'CANCELLED'


ACTIVE_STATUSES = (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(Base):
    """Represents a booked appointment between a client and a trainer."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    service_id = Column(Integer, ForeignKey("services.id"), nullable=True)
    date = Column(Date, nullable=False)
    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False)
    status = Column(
        SqlEnum(AppointmentStatus, native_enum=False, length=16),
        nullable=False,
        default=AppointmentStatus.PENDING,
    )
    price = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(String, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    trainer = relationship("Trainer")
    client = relationship("User")
    service = relationship("Service")

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="appointment_time_valid"),
        Index("idx_appointments_trainer_range", "trainer_id", "start_time", "end_time"),
        Index(
            "uq_appointments_active_trainer_start",
            "trainer_id",
            "start_time",
            unique=True,
            sqlite_where=text("status IN ('PENDING', 'CONFIRMED')"),
            postgresql_where=text("status IN ('PENDING', 'CONFIRMED')"),
        ),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
