from datetime import timedelta

import pytest

from conftest import MONDAY, RecordingSink, at
from trainer_booking.auth.actor import AdminActor, ClientActor, TrainerActor
from trainer_booking.core.errors import AuthorizationError, CancellationWindowExpired, InvalidTransition
from trainer_booking.models.appointment import Appointment, AppointmentStatus
from trainer_booking.services.status_machine import StatusMachine, append_status_note, can_transition

START = at(MONDAY, 9)


@pytest.fixture
def appointment(add_appointment) -> Appointment:
    return add_appointment(START, START + timedelta(hours=1), status=AppointmentStatus.PENDING)


@pytest.mark.parametrize(
    ('current', 'target', 'expected'),
    [
        (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED, True),
        (AppointmentStatus.PENDING, AppointmentStatus.CANCELLED, True),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, True),
        (AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, True),
        (AppointmentStatus.PENDING, AppointmentStatus.COMPLETED, False),
        (AppointmentStatus.PENDING, AppointmentStatus.PENDING, False),
        (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, False),
        (AppointmentStatus.CANCELLED, AppointmentStatus.CONFIRMED, False),
    ],
)
def test_can_transition_follows_lifecycle(current: AppointmentStatus, target: AppointmentStatus, expected: bool) -> None:
    assert can_transition(current, target) is expected


def test_append_status_note_keeps_existing_notes() -> None:
    assert append_status_note(None, 'Client asked to move') == 'Client asked to move'
    assert append_status_note('Bring shoes', 'Running late') == 'Bring shoes\n\n[Status Update]: Running late'
    assert append_status_note('Bring shoes', '   ') == 'Bring shoes'


def test_trainer_confirms_then_completes(session, trainer, appointment, clock) -> None:
    machine = StatusMachine(session, clock=clock)
    actor = TrainerActor(trainer.user_id)

    machine.transition(appointment.id, actor, AppointmentStatus.CONFIRMED, reason='See you Monday')
    updated = machine.transition(appointment.id, actor, AppointmentStatus.COMPLETED)

    assert updated.status == AppointmentStatus.COMPLETED
    assert updated.notes == 'See you Monday'


def test_invalid_transition_leaves_status_unchanged(session, trainer, appointment, clock) -> None:
    machine = StatusMachine(session, clock=clock)

    with pytest.raises(InvalidTransition):
        machine.transition(appointment.id, TrainerActor(trainer.user_id), AppointmentStatus.COMPLETED)

    session.refresh(appointment)
    assert appointment.status == AppointmentStatus.PENDING


def test_client_cannot_confirm(session, client_user, appointment, clock) -> None:
    with pytest.raises(AuthorizationError):
        StatusMachine(session, clock=clock).transition(
            appointment.id, ClientActor(client_user.id), AppointmentStatus.CONFIRMED
        )


def test_client_cancels_own_appointment_outside_window(session, client_user, appointment, clock) -> None:
    updated = StatusMachine(session, clock=clock).transition(
        appointment.id, ClientActor(client_user.id), AppointmentStatus.CANCELLED, reason='Travelling'
    )

    assert updated.status == AppointmentStatus.CANCELLED


def test_client_cannot_cancel_within_window_but_trainer_can(session, trainer, client_user, appointment) -> None:
    machine = StatusMachine(session, clock=lambda: START - timedelta(hours=2))

    with pytest.raises(CancellationWindowExpired):
        machine.transition(appointment.id, ClientActor(client_user.id), AppointmentStatus.CANCELLED)

    updated = machine.transition(appointment.id, TrainerActor(trainer.user_id), AppointmentStatus.CANCELLED)

    assert updated.status == AppointmentStatus.CANCELLED


def test_client_may_cancel_exactly_at_window_boundary(session, client_user, appointment) -> None:
    machine = StatusMachine(session, clock=lambda: START - timedelta(hours=24))

    updated = machine.transition(appointment.id, ClientActor(client_user.id), AppointmentStatus.CANCELLED)

    assert updated.status == AppointmentStatus.CANCELLED


def test_cancellation_window_is_configurable(session, client_user, appointment) -> None:
    machine = StatusMachine(session, clock=lambda: START - timedelta(hours=2), cancellation_window_hours=1)

    updated = machine.transition(appointment.id, ClientActor(client_user.id), AppointmentStatus.CANCELLED)

    assert updated.status == AppointmentStatus.CANCELLED


@pytest.mark.parametrize('actor_kind', ['other_client', 'admin', 'stranger_trainer'])
def test_non_parties_are_forbidden(session, appointment, other_client, clock, actor_kind: str) -> None:
    actor = {
        'other_client': ClientActor(other_client.id),
        'admin': AdminActor(999),
        'stranger_trainer': TrainerActor(other_client.id),
    }[actor_kind]

    with pytest.raises(AuthorizationError):
        StatusMachine(session, clock=clock).transition(appointment.id, actor, AppointmentStatus.CANCELLED)


def test_missing_appointment_looks_forbidden(session, trainer, clock) -> None:
    with pytest.raises(AuthorizationError) as exception_info:
        StatusMachine(session, clock=clock).transition(404, TrainerActor(trainer.user_id), AppointmentStatus.CANCELLED)

    assert exception_info.value.message == 'You are not allowed to perform this action.'


def test_transition_notifies_sink_with_previous_status(session, trainer, appointment, clock) -> None:
    sink = RecordingSink()

    StatusMachine(session, clock=clock, notifier=sink).transition(
        appointment.id, TrainerActor(trainer.user_id), AppointmentStatus.CONFIRMED
    )

    assert sink.events == [
        ('status_changed', appointment.id, AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED)
    ]


def test_trainer_hard_deletes_appointment(session, trainer, appointment, clock) -> None:
    sink = RecordingSink()
    appointment_id = appointment.id

    StatusMachine(session, clock=clock, notifier=sink).delete(appointment_id, TrainerActor(trainer.user_id))

    assert session.get(Appointment, appointment_id) is None
    assert sink.events == [('appointment_deleted', appointment_id, trainer.id)]


def test_client_cannot_delete(session, client_user, appointment, clock) -> None:
    with pytest.raises(AuthorizationError):
        StatusMachine(session, clock=clock).delete(appointment.id, ClientActor(client_user.id))

    assert session.get(Appointment, appointment.id) is not None
