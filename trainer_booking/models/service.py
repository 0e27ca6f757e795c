"""Service model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, Numeric, String

from trainer_booking.database import Base


class Service(Base):
    """A service offered by a trainer; sizes slots and fixes the booking price."""
    __tablename__ = "services"

    id = Column(Integer, primary_key=True, index=True)
    trainer_id = Column(Integer, ForeignKey("trainers.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="service_duration_positive"),
    )
