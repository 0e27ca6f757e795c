from datetime import timedelta

import pytest

from conftest import MONDAY
from trainer_booking.core.calendar import DayOfWeek
from trainer_booking.core.errors import InvalidTimeFormat, TrainerNotFound, ValidationError
from trainer_booking.services.availability_store import AvailabilityStore, WindowSpec, validate_window


def test_validate_window_requires_start_before_end() -> None:
    assert validate_window('08:00', '12:00') == ('08:00', '12:00')

    with pytest.raises(ValidationError):
        validate_window('12:00', '12:00')
    with pytest.raises(InvalidTimeFormat):
        validate_window('8am', '12:00')


def test_replace_week_swaps_only_given_days(session, trainer, monday_window) -> None:
    store = AvailabilityStore(session)
    store.replace_week(trainer.id, {DayOfWeek.WEDNESDAY: [WindowSpec('13:00', '17:00')]})

    replaced = store.replace_week(
        trainer.id,
        {
            DayOfWeek.MONDAY: [WindowSpec('06:00', '07:00'), WindowSpec('18:00', '20:00')],
            DayOfWeek.FRIDAY: [],
        },
    )

    assert [(window.start_time, window.end_time) for window in replaced[DayOfWeek.MONDAY]] == [
        ('06:00', '07:00'),
        ('18:00', '20:00'),
    ]
    assert [(window.start_time, window.end_time) for window in store.list_windows(trainer.id, DayOfWeek.MONDAY)] == [
        ('06:00', '07:00'),
        ('18:00', '20:00'),
    ]
    assert len(store.list_windows(trainer.id, DayOfWeek.WEDNESDAY)) == 1
    assert store.list_windows(trainer.id, DayOfWeek.FRIDAY) == []


def test_replace_week_is_all_or_nothing(session, trainer, monday_window) -> None:
    store = AvailabilityStore(session)

    with pytest.raises(ValidationError):
        store.replace_week(
            trainer.id,
            {
                DayOfWeek.MONDAY: [WindowSpec('09:00', '10:00')],
                DayOfWeek.TUESDAY: [WindowSpec('10:00', '09:00')],
            },
        )

    assert [(window.start_time, window.end_time) for window in store.list_windows(trainer.id, DayOfWeek.MONDAY)] == [
        ('08:00', '12:00')
    ]


def test_replace_day_keeps_inactive_windows_out_of_reads(session, trainer) -> None:
    store = AvailabilityStore(session)

    store.replace_day(trainer.id, DayOfWeek.MONDAY, [WindowSpec('08:00', '09:00', active=False)])

    assert store.list_windows(trainer.id, DayOfWeek.MONDAY) == []
    assert len(store.list_windows(trainer.id, DayOfWeek.MONDAY, active_only=False)) == 1


def test_replace_week_requires_existing_trainer(session) -> None:
    with pytest.raises(TrainerNotFound):
        AvailabilityStore(session).replace_week(404, {DayOfWeek.MONDAY: []})


def test_block_date_is_idempotent_and_unblock_reports_removal(session, trainer) -> None:
    store = AvailabilityStore(session)

    first = store.block_date(trainer.id, MONDAY, 'Conference')
    second = store.block_date(trainer.id, MONDAY)

    assert first.id == second.id
    assert second.reason == 'Conference'
    assert store.is_blocked(trainer.id, MONDAY) is True
    assert store.unblock_date(trainer.id, MONDAY) is True
    assert store.unblock_date(trainer.id, MONDAY) is False
    assert store.is_blocked(trainer.id, MONDAY) is False


def test_week_calendar_lists_seven_days_with_blocked_flags(session, trainer, monday_window) -> None:
    store = AvailabilityStore(session)
    store.block_date(trainer.id, MONDAY + timedelta(days=7))
    store.block_date(trainer.id, MONDAY + timedelta(days=2))

    calendar = store.week_calendar(trainer.id, MONDAY)

    assert [day['date'] for day in calendar] == [MONDAY + timedelta(days=offset) for offset in range(7)]
    assert calendar[0]['day_of_week'] is DayOfWeek.MONDAY
    assert [(window.start_time, window.end_time) for window in calendar[0]['windows']] == [('08:00', '12:00')]
    assert [day['is_blocked'] for day in calendar] == [False, False, True, False, False, False, False]
