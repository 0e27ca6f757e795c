"""Authoritative booking creation.

The conflict check and the insert run in one transaction that starts by
bumping the trainer's ``booking_version``. That write takes the trainer row
lock (PostgreSQL) or the database write lock (SQLite), so two bookers for
the same trainer are serialized and the second one re-checks against the
first one's committed appointment. The partial unique index on
``(trainer_id, start_time)`` backs this up; its violation is reported as
``APPOINTMENT_OVERLAP``.
"""

import logging
from collections.abc import Callable
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from trainer_booking.core import config
from trainer_booking.core.calendar import resolve_timezone, utcnow
from trainer_booking.core.errors import (
    BookingConflict,
    ConflictType,
    DomainError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from trainer_booking.models.appointment import Appointment, AppointmentStatus
from trainer_booking.models.service import Service
from trainer_booking.models.trainer import Trainer
from trainer_booking.models.user import User, UserRole
from trainer_booking.services.conflict_checker import ConflictChecker, ConflictResult, normalize_interval
from trainer_booking.services.notifications import NotificationSink, dispatch

logger = logging.getLogger(__name__)


def normalize_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    normalized = notes.strip()
    if not normalized:
        return None
    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValidationError(
            f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.',
            field='notes',
        )
    return normalized


class BookingCreator:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.checker = ConflictChecker(db, clock=clock)

    def create_booking(
        self,
        trainer_id: int,
        client_id: int,
        service_id: int | None,
        day: date,
        start_time: datetime,
        end_time: datetime,
        price: Decimal | float | None = None,
        notes: str | None = None,
    ) -> Appointment:
        notes = normalize_notes(notes)
        if price is not None:
            price = Decimal(str(price))
            if not price.is_finite() or price < 0:
                raise ValidationError('Price must be a non-negative amount.', field='price')

        try:
            self._lock_trainer(trainer_id)

            result = self.checker.check_conflict(trainer_id, day, start_time, end_time)
            if result.has_conflict:
                raise BookingConflict(result)

            trainer = self.db.get(Trainer, trainer_id)
            start, end = normalize_interval(day, start_time, end_time, resolve_timezone(trainer.timezone))
            self._require_client(client_id)
            snapshot_price = self._snapshot_price(trainer_id, service_id, price)

            appointment = Appointment(
                trainer_id=trainer_id,
                client_id=client_id,
                service_id=service_id,
                date=day,
                start_time=start.astimezone(timezone.utc),
                end_time=end.astimezone(timezone.utc),
                status=AppointmentStatus.PENDING,
                price=snapshot_price,
                notes=notes,
            )
            self.db.add(appointment)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning(
                'Booking lost the race on the active-appointment index',
                extra={'trainer_id': trainer_id, 'start_time': start_time.isoformat()},
            )
            raise BookingConflict(
                ConflictResult(ConflictType.APPOINTMENT_OVERLAP, 'An appointment already exists at this time.')
            ) from exc
        except DomainError as exc:
            self.db.rollback()
            if isinstance(exc, BookingConflict):
                logger.info(
                    'Booking rejected',
                    extra={'trainer_id': trainer_id, 'conflict_type': exc.conflict_type.value},
                )
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Booking failed for trainer %s', trainer_id)
            raise InternalError() from exc

        logger.info(
            'Booking created',
            extra={'trainer_id': trainer_id, 'appointment_id': appointment.id, 'client_id': client_id},
        )
        dispatch(self.notifier, 'booking_created', appointment)
        return appointment

    def _lock_trainer(self, trainer_id: int) -> None:
        self.db.execute(
            update(Trainer)
            .where(Trainer.id == trainer_id)
            .values(booking_version=Trainer.booking_version + 1)
            .execution_options(synchronize_session=False)
        )

    def _require_client(self, client_id: int) -> User:
        client = self.db.get(User, client_id)
        if client is None or client.role != UserRole.CLIENT or not client.is_active:
            raise NotFoundError('Client not found.', details={'clientId': client_id})
        return client

    def _snapshot_price(self, trainer_id: int, service_id: int | None, price: Decimal | float | None) -> Decimal:
        if service_id is None:
            if price is None:
                raise ValidationError('Price is required when no service is selected.', field='price')
            return Decimal(str(price))

        service = self.db.get(Service, service_id)
        if service is None or service.trainer_id != trainer_id or not service.active:
            raise NotFoundError('Service not found.', details={'serviceId': service_id})
        return Decimal(service.price)
