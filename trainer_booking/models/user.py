"""User model definitions."""

from enum import Enum

from sqlalchemy import Boolean, Column, Enum as SqlEnum, Integer, String

from trainer_booking.database import Base


class UserRole(str, Enum):
    TRAINER = 'TRAINER'
    CLIENT = 'CLIENT'
    ADMIN = 'ADMIN'


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, default='')
    role = Column(SqlEnum(UserRole, native_enum=False, length=16), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
