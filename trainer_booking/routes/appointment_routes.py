from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from trainer_booking.auth.actor import Actor, AdminActor, ClientActor, TrainerActor
from trainer_booking.auth.dependencies import get_clock, get_current_actor, get_db, get_notifier
from trainer_booking.auth.permissions import require_booking_party, trainer_id_for_actor
from trainer_booking.core import config
from trainer_booking.models.appointment import Appointment, AppointmentStatus
from trainer_booking.routes.schemas import AppointmentView, CamelModel, project_appointment
from trainer_booking.services.booking_creator import BookingCreator
from trainer_booking.services.conflict_checker import ConflictChecker
from trainer_booking.services.notifications import NotificationSink
from trainer_booking.services.status_machine import StatusMachine

router = APIRouter(tags=['appointments'])

MAX_LIST_LIMIT = 100
MAX_REASON_LENGTH = 200


class CheckConflictRequest(CamelModel):
    trainer_id: int
    date: date
    start_time: datetime
    end_time: datetime
    exclude_appointment_id: int | None = None


class ConflictResponse(CamelModel):
    has_conflict: bool
    conflict_type: str
    message: str
    conflict_details: dict | None = None
    availability_window: dict | None = None


class CreateAppointmentRequest(CamelModel):
    trainer_id: int
    client_id: int
    service_id: int | None = None
    date: date
    start_time: datetime
    end_time: datetime
    price: Decimal | None = Field(default=None, ge=0, max_digits=10, decimal_places=2, allow_inf_nan=False)
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

        return normalized


class UpdateStatusRequest(CamelModel):
    status: AppointmentStatus
    reason: str | None = Field(default=None, max_length=MAX_REASON_LENGTH)


@router.post('/appointments/check', response_model=ConflictResponse, response_model_exclude_none=True)
def check_conflict(
    data: CheckConflictRequest,
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    result = ConflictChecker(db, clock=clock).check_conflict(
        data.trainer_id,
        data.date,
        data.start_time,
        data.end_time,
        data.exclude_appointment_id,
    )
    return result.to_payload()


@router.post('/appointments', response_model=AppointmentView, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    notifier: NotificationSink | None = Depends(get_notifier),
):
    require_booking_party(db, actor, data.trainer_id, data.client_id)

    appointment = BookingCreator(db, clock=clock, notifier=notifier).create_booking(
        trainer_id=data.trainer_id,
        client_id=data.client_id,
        service_id=data.service_id,
        day=data.date,
        start_time=data.start_time,
        end_time=data.end_time,
        price=data.price,
        notes=data.notes,
    )
    return project_appointment(_reload(db, appointment.id), actor)


@router.get('/appointments', response_model=list[AppointmentView])
def list_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    on_date: date | None = Query(default=None, alias='date'),
    limit: int = Query(default=10, ge=1, le=MAX_LIST_LIMIT),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    query = select(Appointment).options(
        joinedload(Appointment.client),
        joinedload(Appointment.service),
        joinedload(Appointment.trainer),
    )

    match actor:
        case TrainerActor():
            query = query.where(Appointment.trainer_id == trainer_id_for_actor(db, actor))
        case ClientActor(user_id=user_id):
            query = query.where(Appointment.client_id == user_id)
        case AdminActor():
            pass

    if status_filter is not None:
        query = query.where(Appointment.status == status_filter)
    if on_date is not None:
        query = query.where(Appointment.date == on_date)

    appointments = db.scalars(query.order_by(Appointment.start_time.asc()).limit(limit)).unique()
    return [project_appointment(appointment, actor) for appointment in appointments]


@router.patch('/appointments/{appointment_id}/status', response_model=AppointmentView)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
    notifier: NotificationSink | None = Depends(get_notifier),
):
    machine = StatusMachine(db, clock=clock, notifier=notifier)
    appointment = machine.transition(appointment_id, actor, data.status, data.reason)
    return project_appointment(_reload(db, appointment.id), actor)


@router.delete('/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
    notifier: NotificationSink | None = Depends(get_notifier),
):
    StatusMachine(db, notifier=notifier).delete(appointment_id, actor)


def _reload(db: Session, appointment_id: int) -> Appointment:
    return db.scalar(
        select(Appointment)
        .options(joinedload(Appointment.client), joinedload(Appointment.service), joinedload(Appointment.trainer))
        .where(Appointment.id == appointment_id)
        .execution_options(populate_existing=True)
    )
