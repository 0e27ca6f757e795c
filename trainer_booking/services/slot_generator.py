"""Bookable slot generation for a trainer on a single date."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from trainer_booking.core import config
from trainer_booking.core.calendar import (
    day_bounds,
    day_of_week,
    format_wall_clock,
    overlaps,
    resolve_timezone,
    utcnow,
)
from trainer_booking.core.errors import NotFoundError, ValidationError
from trainer_booking.models.service import Service
from trainer_booking.services.availability_store import AvailabilityStore
from trainer_booking.services.conflict_checker import find_active_appointments, window_bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeSlot:
    date: date
    start_time: datetime
    end_time: datetime
    available: bool
    # shorter than the requested granularity because it was clipped to the window end
    partial: bool = False

    @property
    def display(self) -> str:
        return f'{format_wall_clock(self.start_time)} - {format_wall_clock(self.end_time)}'


def iterate_window(start: datetime, end: datetime, step: timedelta):
    """Yield ``(slot_start, slot_end, partial)`` covering [start, end) in ``step`` increments."""
    current = start
    while current < end:
        slot_end = min(current + step, end)
        yield current, slot_end, slot_end - current < step
        current = slot_end


class SlotGenerator:
    def __init__(self, db: Session, clock: Callable[[], datetime] = utcnow) -> None:
        self.db = db
        self.clock = clock
        self.store = AvailabilityStore(db)

    def resolve_granularity(self, trainer_id: int, granularity_minutes: int | None, service_id: int | None) -> int:
        if granularity_minutes is None and service_id is not None:
            service = self.db.get(Service, service_id)
            if service is None or service.trainer_id != trainer_id or not service.active:
                raise NotFoundError('Service not found.', details={'serviceId': service_id})
            granularity_minutes = service.duration_minutes

        if granularity_minutes is None:
            granularity_minutes = config.DEFAULT_SLOT_GRANULARITY_MINUTES
        if granularity_minutes <= 0:
            raise ValidationError('Granularity must be a positive number of minutes.', field='granularity')
        return granularity_minutes

    def generate_slots(
        self,
        trainer_id: int,
        day: date,
        granularity_minutes: int | None = None,
        service_id: int | None = None,
    ) -> list[TimeSlot]:
        trainer = self.store.require_trainer(trainer_id)
        granularity = self.resolve_granularity(trainer_id, granularity_minutes, service_id)

        if self.store.is_blocked(trainer_id, day):
            return []

        windows = self.store.list_windows(trainer_id, day_of_week(day))
        if not windows:
            return []

        tz = resolve_timezone(trainer.timezone)
        step = timedelta(minutes=granularity)

        candidates: dict[tuple[datetime, datetime], bool] = {}
        for window in windows:
            # step in UTC so slots keep their real length across DST changes
            window_start, window_end = (bound.astimezone(timezone.utc) for bound in window_bounds(window, day, tz))
            for slot_start, slot_end, partial in iterate_window(window_start, window_end, step):
                candidates.setdefault((slot_start.astimezone(tz), slot_end.astimezone(tz)), partial)

        range_start, range_end = day_bounds(day, tz)
        booked = [
            (appointment.start_time, appointment.end_time)
            for appointment in find_active_appointments(self.db, trainer_id, range_start, range_end)
        ]
        now = self.clock()

        slots = [
            TimeSlot(
                date=day,
                start_time=slot_start,
                end_time=slot_end,
                available=slot_start > now
                and not any(overlaps(slot_start, slot_end, booked_start, booked_end) for booked_start, booked_end in booked),
                partial=partial,
            )
            for (slot_start, slot_end), partial in candidates.items()
        ]
        slots.sort(key=lambda slot: (slot.start_time, slot.end_time))

        logger.debug(
            'Generated slots',
            extra={'trainer_id': trainer_id, 'date': day.isoformat(), 'count': len(slots)},
        )
        return slots
