"""Read/write access to trainers' weekly windows and blocked dates."""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from trainer_booking.core.calendar import DayOfWeek, day_of_week, parse_wall_clock
from trainer_booking.core.errors import TrainerNotFound, ValidationError
from trainer_booking.models.availability import AvailabilityWindow, BlockedDate
from trainer_booking.models.trainer import Trainer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowSpec:
    start_time: str
    end_time: str
    active: bool = True


def validate_window(start_time: str, end_time: str) -> tuple[str, str]:
    start = parse_wall_clock(start_time)
    end = parse_wall_clock(end_time)
    if start >= end:
        raise ValidationError('Window start time must be before its end time.', field='startTime')
    return start.strftime('%H:%M'), end.strftime('%H:%M')


class AvailabilityStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_trainer(self, trainer_id: int) -> Trainer | None:
        return self.db.get(Trainer, trainer_id)

    def require_trainer(self, trainer_id: int) -> Trainer:
        trainer = self.get_trainer(trainer_id)
        if trainer is None or not trainer.is_active:
            raise TrainerNotFound(trainer_id)
        return trainer

    def list_windows(
        self,
        trainer_id: int,
        weekday: DayOfWeek | None = None,
        active_only: bool = True,
    ) -> list[AvailabilityWindow]:
        query = select(AvailabilityWindow).where(AvailabilityWindow.trainer_id == trainer_id)
        if weekday is not None:
            query = query.where(AvailabilityWindow.day_of_week == weekday)
        if active_only:
            query = query.where(AvailabilityWindow.active.is_(True))
        query = query.order_by(AvailabilityWindow.start_time.asc(), AvailabilityWindow.end_time.asc())
        return list(self.db.scalars(query))

    def windows_for_date(self, trainer_id: int, day: date) -> list[AvailabilityWindow]:
        return self.list_windows(trainer_id, day_of_week(day))

    def is_blocked(self, trainer_id: int, day: date) -> bool:
        query = select(BlockedDate.id).where(
            BlockedDate.trainer_id == trainer_id,
            BlockedDate.date == day,
        )
        return self.db.scalar(query) is not None

    def list_blocked_dates(self, trainer_id: int, start: date, end: date) -> list[BlockedDate]:
        query = (
            select(BlockedDate)
            .where(
                BlockedDate.trainer_id == trainer_id,
                BlockedDate.date >= start,
                BlockedDate.date <= end,
            )
            .order_by(BlockedDate.date.asc())
        )
        return list(self.db.scalars(query))

    def _replace_day(self, trainer_id: int, weekday: DayOfWeek, windows: Iterable[WindowSpec]) -> list[AvailabilityWindow]:
        validated = [(validate_window(spec.start_time, spec.end_time), spec.active) for spec in windows]

        existing = self.db.scalars(
            select(AvailabilityWindow).where(
                AvailabilityWindow.trainer_id == trainer_id,
                AvailabilityWindow.day_of_week == weekday,
            )
        )
        for window in existing:
            self.db.delete(window)

        created = [
            AvailabilityWindow(
                trainer_id=trainer_id,
                day_of_week=weekday,
                start_time=start_time,
                end_time=end_time,
                active=active,
            )
            for (start_time, end_time), active in validated
        ]
        self.db.add_all(created)
        return created

    def replace_day(self, trainer_id: int, weekday: DayOfWeek, windows: Iterable[WindowSpec]) -> list[AvailabilityWindow]:
        return self.replace_week(trainer_id, {weekday: list(windows)})[weekday]

    def replace_week(
        self,
        trainer_id: int,
        days: Mapping[DayOfWeek, Iterable[WindowSpec]],
    ) -> dict[DayOfWeek, list[AvailabilityWindow]]:
        """Delete and recreate the windows of every given day in one commit."""
        self.require_trainer(trainer_id)
        try:
            replaced = {weekday: self._replace_day(trainer_id, weekday, specs) for weekday, specs in days.items()}
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            'Replaced availability windows',
            extra={'trainer_id': trainer_id, 'days': [weekday.value for weekday in replaced]},
        )
        return replaced

    def block_date(self, trainer_id: int, day: date, reason: str | None = None) -> BlockedDate:
        self.require_trainer(trainer_id)
        try:
            blocked = self.db.scalar(
                select(BlockedDate).where(BlockedDate.trainer_id == trainer_id, BlockedDate.date == day)
            )
            if blocked is None:
                blocked = BlockedDate(trainer_id=trainer_id, date=day, reason=reason)
                self.db.add(blocked)
            elif reason:
                blocked.reason = reason
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return blocked

    def unblock_date(self, trainer_id: int, day: date) -> bool:
        try:
            blocked = self.db.scalar(
                select(BlockedDate).where(BlockedDate.trainer_id == trainer_id, BlockedDate.date == day)
            )
            if blocked is None:
                return False
            self.db.delete(blocked)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return True

    def week_calendar(self, trainer_id: int, week_start: date) -> list[dict]:
        self.require_trainer(trainer_id)
        week_end = week_start + timedelta(days=6)
        blocked_days = {blocked.date for blocked in self.list_blocked_dates(trainer_id, week_start, week_end)}

        windows_by_day: dict[DayOfWeek, list[AvailabilityWindow]] = {}
        for window in self.list_windows(trainer_id):
            windows_by_day.setdefault(window.day_of_week, []).append(window)

        calendar = []
        for offset in range(7):
            current = week_start + timedelta(days=offset)
            is_blocked = current in blocked_days
            calendar.append(
                {
                    'date': current,
                    'day_of_week': day_of_week(current),
                    'windows': [] if is_blocked else windows_by_day.get(day_of_week(current), []),
                    'is_blocked': is_blocked,
                }
            )
        return calendar
