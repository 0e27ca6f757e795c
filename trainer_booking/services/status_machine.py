"""Appointment lifecycle: legal status transitions and who may perform them."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trainer_booking.auth.actor import Actor, ClientActor, TrainerActor
from trainer_booking.auth.permissions import owns_trainer
from trainer_booking.core import config
from trainer_booking.core.calendar import utcnow
from trainer_booking.core.errors import (
    AuthorizationError,
    CancellationWindowExpired,
    DomainError,
    InternalError,
    InvalidTransition,
)
from trainer_booking.models.appointment import Appointment, AppointmentStatus
from trainer_booking.services.notifications import NotificationSink, dispatch

logger = logging.getLogger(__name__)

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset({AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.CONFIRMED: frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[current]


def append_status_note(notes: str | None, reason: str | None) -> str | None:
    reason = (reason or '').strip()
    if not reason:
        return notes
    # first reason is stored bare, later ones are tagged
    return f'{notes}\n\n[Status Update]: {reason}' if notes else reason


class StatusMachine:
    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = utcnow,
        notifier: NotificationSink | None = None,
        cancellation_window_hours: int | None = None,
    ) -> None:
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.cancellation_window_hours = (
            config.CANCELLATION_WINDOW_HOURS if cancellation_window_hours is None else cancellation_window_hours
        )

    def _load_for_update(self, appointment_id: int) -> Appointment:
        appointment = self.db.scalar(
            select(Appointment).where(Appointment.id == appointment_id).with_for_update()
        )
        # a missing appointment looks exactly like someone else's
        if appointment is None:
            raise AuthorizationError()
        return appointment

    def _authorize(self, appointment: Appointment, actor: Actor, target: AppointmentStatus) -> bool:
        """Return True when the actor acts as the owning trainer."""
        match actor:
            case TrainerActor() if owns_trainer(self.db, actor, appointment.trainer_id):
                return True
            case ClientActor(user_id=user_id) if user_id == appointment.client_id:
                if target != AppointmentStatus.CANCELLED:
                    raise AuthorizationError('Clients can only cancel their appointments.')
                return False
            case _:
                raise AuthorizationError()

    def transition(
        self,
        appointment_id: int,
        actor: Actor,
        target: AppointmentStatus,
        reason: str | None = None,
    ) -> Appointment:
        target = AppointmentStatus(target)
        try:
            appointment = self._load_for_update(appointment_id)
            is_trainer = self._authorize(appointment, actor, target)

            previous = appointment.status
            if not can_transition(previous, target):
                raise InvalidTransition(previous.value, target.value)

            if target == AppointmentStatus.CANCELLED and not is_trainer:
                cutoff = appointment.start_time - timedelta(hours=self.cancellation_window_hours)
                if self.clock() > cutoff:
                    raise CancellationWindowExpired(self.cancellation_window_hours)

            appointment.status = target
            appointment.notes = append_status_note(appointment.notes, reason)
            self.db.commit()
        except DomainError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Status update failed for appointment %s', appointment_id)
            raise InternalError() from exc

        logger.info(
            'Appointment status changed',
            extra={'appointment_id': appointment_id, 'from_status': previous.value, 'to_status': target.value},
        )
        dispatch(self.notifier, 'status_changed', appointment, previous)
        return appointment

    def delete(self, appointment_id: int, actor: Actor) -> None:
        """Hard delete outside the lifecycle; owning trainer only."""
        try:
            appointment = self._load_for_update(appointment_id)
            if not (isinstance(actor, TrainerActor) and owns_trainer(self.db, actor, appointment.trainer_id)):
                raise AuthorizationError('Only the trainer can delete appointments.')

            trainer_id = appointment.trainer_id
            self.db.delete(appointment)
            self.db.commit()
        except DomainError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception('Deleting appointment %s failed', appointment_id)
            raise InternalError() from exc

        logger.warning('Appointment hard-deleted', extra={'appointment_id': appointment_id, 'trainer_id': trainer_id})
        dispatch(self.notifier, 'appointment_deleted', appointment_id, trainer_id)
