"""
Conflict detection for proposed bookings.

Decides whether an interval can be booked for a trainer and, when it
cannot, which single reason is reported. Reasons are evaluated in a fixed
order so the answer is deterministic when several conditions hold:

    1. trainer missing or inactive     -> TRAINER_UNAVAILABLE
    2. start at or before now          -> PAST_TIME
    3. overlaps an active appointment  -> APPOINTMENT_OVERLAP
    4. no window for the day / blocked -> NO_AVAILABILITY
    5. not inside any window           -> OUTSIDE_AVAILABILITY
    6. otherwise                       -> NONE
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from trainer_booking.core import config
from trainer_booking.core.calendar import (
    combine,
    day_of_week,
    format_wall_clock,
    minutes_between,
    resolve_timezone,
    to_local,
    utcnow,
)
from trainer_booking.core.errors import ConflictType, ValidationError
from trainer_booking.models.appointment import ACTIVE_STATUSES, Appointment
from trainer_booking.models.availability import AvailabilityWindow
from trainer_booking.models.trainer import Trainer
from trainer_booking.services.availability_store import AvailabilityStore

logger = logging.getLogger(__name__)


@dataclass
class ConflictResult:
    conflict_type: ConflictType
    message: str
    details: dict[str, Any] | None = None
    availability_window: dict[str, str] | None = None

    @property
    def has_conflict(self) -> bool:
        return self.conflict_type is not ConflictType.NONE

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            'hasConflict': self.has_conflict,
            'conflictType': self.conflict_type.value,
            'message': self.message,
        }
        if self.details is not None:
            payload['conflictDetails'] = self.details
        if self.availability_window is not None:
            payload['availabilityWindow'] = self.availability_window
        return payload


def find_active_appointments(
    db: Session,
    trainer_id: int,
    range_start: datetime,
    range_end: datetime,
    exclude_appointment_id: int | None = None,
) -> list[Appointment]:
    """PENDING/CONFIRMED appointments of the trainer overlapping [range_start, range_end).

    Same half-open predicate as ``calendar.overlaps``: touching endpoints are not returned.
    """
    query = (
        select(Appointment)
        .options(joinedload(Appointment.client), joinedload(Appointment.service))
        .where(
            Appointment.trainer_id == trainer_id,
            Appointment.status.in_(ACTIVE_STATUSES),
            Appointment.start_time < range_end,
            Appointment.end_time > range_start,
        )
        .order_by(Appointment.start_time.asc())
    )
    if exclude_appointment_id is not None:
        query = query.where(Appointment.id != exclude_appointment_id)
    return list(db.scalars(query).unique())


def window_bounds(window: AvailabilityWindow, day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    return combine(day, window.start_time, tz), combine(day, window.end_time, tz)


class ConflictChecker:
    """Authoritative accept/reject decision for a single proposed interval."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock
        self.store = AvailabilityStore(db)

    def check_conflict(
        self,
        trainer_id: int,
        day: date,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: int | None = None,
    ) -> ConflictResult:
        trainer = self.db.get(Trainer, trainer_id)
        # malformed input is rejected before any conflict is considered
        tz = resolve_timezone(trainer.timezone if trainer is not None else config.DEFAULT_TIMEZONE)
        start, end = normalize_interval(day, start_time, end_time, tz)

        if trainer is None or not trainer.is_active:
            return ConflictResult(ConflictType.TRAINER_UNAVAILABLE, 'Trainer not found or inactive.')

        if start <= self.clock():
            return ConflictResult(ConflictType.PAST_TIME, 'Cannot book a date/time in the past.')

        conflicting = find_active_appointments(self.db, trainer_id, start, end, exclude_appointment_id)
        if conflicting:
            appointment = conflicting[0]
            logger.warning(
                'Booking overlaps an existing appointment',
                extra={'trainer_id': trainer_id, 'appointment_id': appointment.id},
            )
            return ConflictResult(
                ConflictType.APPOINTMENT_OVERLAP,
                'An appointment already exists at this time.',
                details=describe_appointment(appointment),
            )

        weekday = day_of_week(day)
        if self.store.is_blocked(trainer_id, day):
            return ConflictResult(ConflictType.NO_AVAILABILITY, 'Trainer is not available on this date.')

        windows = self.store.list_windows(trainer_id, weekday)
        if not windows:
            return ConflictResult(
                ConflictType.NO_AVAILABILITY,
                f'Trainer is not available on {weekday.value.lower()}s.',
            )

        bounds = [(window, *window_bounds(window, day, tz)) for window in windows]
        if not any(window_start <= start and end <= window_end for _, window_start, window_end in bounds):
            nearest = _nearest_window(bounds, start, end)
            return ConflictResult(
                ConflictType.OUTSIDE_AVAILABILITY,
                f"Time is outside the trainer's availability ({nearest.start_time} - {nearest.end_time}).",
                availability_window={'start': nearest.start_time, 'end': nearest.end_time},
            )

        return ConflictResult(ConflictType.NONE, 'Time slot is available for booking.')


def normalize_interval(day: date, start_time: datetime, end_time: datetime, tz: tzinfo) -> tuple[datetime, datetime]:
    start = to_local(start_time, tz)
    end = to_local(end_time, tz)
    if start >= end:
        raise ValidationError('Start time must be before end time.', field='endTime')
    if start.date() != day:
        raise ValidationError('Start time must fall on the requested date.', field='date')
    return start, end


def describe_appointment(appointment: Appointment) -> dict[str, Any]:
    return {
        'appointmentId': appointment.id,
        'clientName': appointment.client.name if appointment.client else None,
        'serviceName': appointment.service.name if appointment.service else None,
        'startTime': appointment.start_time.isoformat(),
        'endTime': appointment.end_time.isoformat(),
        'status': appointment.status.value,
    }


def _nearest_window(bounds, start: datetime, end: datetime) -> AvailabilityWindow:
    def score(entry):
        window, window_start, window_end = entry
        shared = minutes_between(max(start, window_start), min(end, window_end))
        distance = abs(minutes_between(window_start, start))
        return (-max(shared, 0), distance, format_wall_clock(window_start))

    return min(bounds, key=score)[0]
