"""Response and request shapes shared by the HTTP routes."""

from datetime import date, datetime
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from trainer_booking.auth.actor import Actor, AdminActor, ClientActor, TrainerActor
from trainer_booking.models.appointment import Appointment, AppointmentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class AppointmentViewBase(CamelModel):
    id: int
    trainer_id: int
    client_id: int
    service_id: int | None = None
    date: date
    start_time: datetime
    end_time: datetime
    status: AppointmentStatus
    price: float


class TrainerAppointmentView(AppointmentViewBase):
    view: Literal['trainer'] = 'trainer'
    client_name: str
    client_email: str
    service_name: str | None = None
    notes: str | None = None


class ClientAppointmentView(AppointmentViewBase):
    view: Literal['client'] = 'client'
    trainer_name: str
    service_name: str | None = None


AppointmentView = Annotated[TrainerAppointmentView | ClientAppointmentView, Field(discriminator='view')]


def _base_fields(appointment: Appointment) -> dict:
    return {
        'id': appointment.id,
        'trainer_id': appointment.trainer_id,
        'client_id': appointment.client_id,
        'service_id': appointment.service_id,
        'date': appointment.date,
        'start_time': appointment.start_time,
        'end_time': appointment.end_time,
        'status': appointment.status,
        'price': float(appointment.price),
        'service_name': appointment.service.name if appointment.service else None,
    }


def project_appointment(appointment: Appointment, actor: Actor) -> TrainerAppointmentView | ClientAppointmentView:
    match actor:
        case TrainerActor() | AdminActor():
            return TrainerAppointmentView(
                **_base_fields(appointment),
                client_name=appointment.client.name,
                client_email=appointment.client.email,
                notes=appointment.notes,
            )
        case ClientActor():
            return ClientAppointmentView(
                **_base_fields(appointment),
                trainer_name=appointment.trainer.name,
            )
