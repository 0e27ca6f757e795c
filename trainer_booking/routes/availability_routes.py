from collections.abc import Callable
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import field_validator
from sqlalchemy.orm import Session

from trainer_booking.auth.actor import Actor
from trainer_booking.auth.dependencies import get_clock, get_current_actor, get_db
from trainer_booking.auth.permissions import require_trainer_owner
from trainer_booking.core.calendar import DayOfWeek, day_of_week, week_start_for
from trainer_booking.core.errors import DomainError
from trainer_booking.routes.schemas import CamelModel
from trainer_booking.services.availability_store import AvailabilityStore, WindowSpec, validate_window
from trainer_booking.services.slot_generator import SlotGenerator

router = APIRouter(tags=['availability'])

MAX_REASON_LENGTH = 200


class WindowResponse(CamelModel):
    day_of_week: DayOfWeek
    start_time: str
    end_time: str


class SlotResponse(CamelModel):
    start_time: datetime
    end_time: datetime
    display: str
    available: bool
    partial: bool


class AvailabilityResponse(CamelModel):
    trainer_id: int
    availability: list[WindowResponse]
    available_slots: list[SlotResponse]
    requested_date: date
    is_blocked: bool


class CalendarDayResponse(CamelModel):
    date: date
    day_of_week: DayOfWeek
    windows: list[WindowResponse]
    is_blocked: bool


class CalendarResponse(CamelModel):
    trainer_id: int
    week_start: date
    days: list[CalendarDayResponse]


class WindowRequest(CamelModel):
    start_time: str
    end_time: str
    active: bool = True

    @field_validator('end_time')
    @classmethod
    def validate_bounds(cls, value: str, info) -> str:
        start_time = info.data.get('start_time')
        if start_time is None:
            return value
        try:
            validate_window(start_time, value)
        except DomainError as exc:
            raise ValueError(exc.message) from exc
        return value


class DayWindowsRequest(CamelModel):
    day_of_week: DayOfWeek
    windows: list[WindowRequest]


class ReplaceAvailabilityRequest(CamelModel):
    days: list[DayWindowsRequest]

    @field_validator('days')
    @classmethod
    def validate_unique_days(cls, value: list[DayWindowsRequest]) -> list[DayWindowsRequest]:
        seen = [day.day_of_week for day in value]
        if len(seen) != len(set(seen)):
            raise ValueError('Each day of the week may appear only once.')
        return value


class BlockDateRequest(CamelModel):
    date: date
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if len(normalized) > MAX_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_REASON_LENGTH} characters or fewer.')
        return normalized or None


class BlockedDateResponse(CamelModel):
    id: int
    trainer_id: int
    date: date
    reason: str | None = None


def _window_responses(windows) -> list[WindowResponse]:
    return [
        WindowResponse(day_of_week=window.day_of_week, start_time=window.start_time, end_time=window.end_time)
        for window in windows
    ]


@router.get('/trainers/{trainer_id}/availability', response_model=AvailabilityResponse)
def get_availability(
    trainer_id: int,
    requested_date: date = Query(..., alias='date'),
    granularity: int | None = Query(default=None, ge=1, le=24 * 60),
    service_id: int | None = Query(default=None, alias='serviceId'),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    generator = SlotGenerator(db, clock=clock)
    slots = generator.generate_slots(trainer_id, requested_date, granularity, service_id)
    store = generator.store

    return AvailabilityResponse(
        trainer_id=trainer_id,
        availability=_window_responses(store.list_windows(trainer_id, day_of_week(requested_date))),
        available_slots=[
            SlotResponse(
                start_time=slot.start_time,
                end_time=slot.end_time,
                display=slot.display,
                available=slot.available,
                partial=slot.partial,
            )
            for slot in slots
        ],
        requested_date=requested_date,
        is_blocked=store.is_blocked(trainer_id, requested_date),
    )


@router.get('/trainers/{trainer_id}/availability/calendar', response_model=CalendarResponse)
def get_week_calendar(
    trainer_id: int,
    week_start: date | None = Query(default=None, alias='weekStart'),
    db: Session = Depends(get_db),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    start = week_start or week_start_for(clock().date())
    days = AvailabilityStore(db).week_calendar(trainer_id, start)

    return CalendarResponse(
        trainer_id=trainer_id,
        week_start=start,
        days=[
            CalendarDayResponse(
                date=day['date'],
                day_of_week=day['day_of_week'],
                windows=_window_responses(day['windows']),
                is_blocked=day['is_blocked'],
            )
            for day in days
        ],
    )


@router.put('/trainers/{trainer_id}/availability', response_model=list[WindowResponse])
def replace_availability(
    trainer_id: int,
    data: ReplaceAvailabilityRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    require_trainer_owner(db, actor, trainer_id)

    store = AvailabilityStore(db)
    replaced = store.replace_week(
        trainer_id,
        {
            day.day_of_week: [WindowSpec(window.start_time, window.end_time, window.active) for window in day.windows]
            for day in data.days
        },
    )
    return _window_responses(window for windows in replaced.values() for window in windows)


@router.post(
    '/trainers/{trainer_id}/blocked-dates',
    response_model=BlockedDateResponse,
    status_code=status.HTTP_201_CREATED,
)
def block_date(
    trainer_id: int,
    data: BlockDateRequest,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    require_trainer_owner(db, actor, trainer_id)
    return AvailabilityStore(db).block_date(trainer_id, data.date, data.reason)


@router.delete('/trainers/{trainer_id}/blocked-dates/{blocked_date}', status_code=status.HTTP_204_NO_CONTENT)
def unblock_date(
    trainer_id: int,
    blocked_date: date,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    require_trainer_owner(db, actor, trainer_id)
    AvailabilityStore(db).unblock_date(trainer_id, blocked_date)
