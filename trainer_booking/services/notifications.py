"""Side-effect sink invoked after a booking or status change has committed.

Delivery (email, push, payments) lives outside the engine; a failing sink
is logged and never undoes the committed change.
"""

import logging
from typing import Protocol

from trainer_booking.models.appointment import Appointment, AppointmentStatus

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def booking_created(self, appointment: Appointment) -> None: ...

    def status_changed(self, appointment: Appointment, previous: AppointmentStatus) -> None: ...

    def appointment_deleted(self, appointment_id: int, trainer_id: int) -> None: ...


class LoggingNotificationSink:
    def booking_created(self, appointment: Appointment) -> None:
        logger.info(
            'Booking created',
            extra={'appointment_id': appointment.id, 'trainer_id': appointment.trainer_id},
        )

    def status_changed(self, appointment: Appointment, previous: AppointmentStatus) -> None:
        logger.info(
            'Appointment status changed',
            extra={
                'appointment_id': appointment.id,
                'from_status': previous.value,
                'to_status': appointment.status.value,
            },
        )

    def appointment_deleted(self, appointment_id: int, trainer_id: int) -> None:
        logger.info('Appointment deleted', extra={'appointment_id': appointment_id, 'trainer_id': trainer_id})


def dispatch(sink: NotificationSink | None, event: str, *args) -> None:
    if sink is None:
        return
    try:
        getattr(sink, event)(*args)
    except Exception:
        logger.exception('Notification sink failed for %s; the change is kept.', event)
