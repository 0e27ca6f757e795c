"""Trainer model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from trainer_booking.core import config
from trainer_booking.database import Base


class Trainer(Base):
    """A bookable trainer; active while the owning user is active."""
    __tablename__ = "trainers"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    timezone = Column(String, nullable=False, default=lambda: config.DEFAULT_TIMEZONE)
    # bumped inside every booking transaction to serialize writers per trainer
    booking_version = Column(Integer, nullable=False, default=0)

    user = relationship("User", lazy="joined")

    @property
    def is_active(self) -> bool:
        return self.user is not None and bool(self.user.is_active)

    @property
    def name(self) -> str:
        return self.user.name if self.user is not None else ''
