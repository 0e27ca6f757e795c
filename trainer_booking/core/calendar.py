"""Calendar arithmetic shared by every component that reasons about dates.

All day-of-week derivation goes through :func:`day_of_week` so stored
windows and requested dates always agree, whatever the server locale.
"""

import re
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trainer_booking.core.errors import InvalidTimeFormat

WALL_CLOCK_PATTERN = re.compile(r'^(\d{2}):(\d{2})$')


class DayOfWeek(str, Enum):
    MONDAY = 'MONDAY'
    TUESDAY = 'TUESDAY'
    WEDNESDAY = 'WEDNESDAY'
    THURSDAY = 'THURSDAY'
    FRIDAY = 'FRIDAY'
    SATURDAY = 'SATURDAY'
    SUNDAY = 'SUNDAY'


# date.weekday() order: Monday == 0
WEEKDAYS = tuple(DayOfWeek)


def day_of_week(value: date) -> DayOfWeek:
    if isinstance(value, datetime):
        value = value.date()
    return WEEKDAYS[value.weekday()]


def parse_wall_clock(value: str) -> time:
    if not isinstance(value, str):
        raise InvalidTimeFormat(f'Expected an HH:MM string, got {value!r}.')

    match = WALL_CLOCK_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormat(f'Invalid time {value!r}; expected HH:MM (24h).')

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidTimeFormat(f'Invalid time {value!r}; expected HH:MM (24h).')
    return time(hour, minute)


def format_wall_clock(value: time | datetime) -> str:
    return value.strftime('%H:%M')


def resolve_timezone(name: str | None) -> tzinfo:
    if not name or name.upper() == 'UTC':
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimeFormat(f'Unknown timezone {name!r}.', field='timezone') from exc


def combine(day: date, wall_clock: str | time, tz: tzinfo) -> datetime:
    """Return the concrete instant for ``wall_clock`` on ``day`` in ``tz``."""
    if isinstance(wall_clock, str):
        wall_clock = parse_wall_clock(wall_clock)
    return datetime.combine(day, wall_clock, tzinfo=tz)


def to_local(instant: datetime, tz: tzinfo) -> datetime:
    """Interpret naive values as already local, convert aware ones."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=tz)
    return instant.astimezone(tz)


def day_bounds(day: date, tz: tzinfo) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time(0, 0), tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time(0, 0), tzinfo=tz)
    return start, end


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # half-open intervals: touching endpoints do not overlap
    return a_start < b_end and b_start < a_end


def week_start_for(day: date) -> date:
    return day - timedelta(days=day.weekday())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
