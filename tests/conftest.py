import os
from collections.abc import Iterator
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite://')

from trainer_booking.auth.dependencies import get_clock  # noqa: E402
from trainer_booking.auth.jwt_handler import create_access_token  # noqa: E402
from trainer_booking.core.calendar import DayOfWeek  # noqa: E402
from trainer_booking.database import Database  # noqa: E402
from trainer_booking.main import create_app  # noqa: E402
from trainer_booking.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from trainer_booking.models.availability import AvailabilityWindow  # noqa: E402
from trainer_booking.models.service import Service  # noqa: E402
from trainer_booking.models.trainer import Trainer  # noqa: E402
from trainer_booking.models.user import User, UserRole  # noqa: E402

# Thursday; the Monday below is in the future relative to it
NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
MONDAY = date(2026, 1, 5)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=timezone.utc)


class RecordingSink:
    def __init__(self) -> None:
        self.events: list[tuple] = []

    def booking_created(self, appointment) -> None:
        self.events.append(('booking_created', appointment.id))

    def status_changed(self, appointment, previous) -> None:
        self.events.append(('status_changed', appointment.id, previous, appointment.status))

    def appointment_deleted(self, appointment_id, trainer_id) -> None:
        self.events.append(('appointment_deleted', appointment_id, trainer_id))


@pytest.fixture
def database() -> Iterator[Database]:
    db = Database('sqlite://', poolclass=StaticPool)
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def session(database: Database) -> Iterator[Session]:
    db = database.session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def trainer(session: Session) -> Trainer:
    user = User(email='casey@example.com', name='Casey Coach', role=UserRole.TRAINER)
    trainer = Trainer(user=user, timezone='UTC')
    session.add(trainer)
    session.commit()
    return trainer


@pytest.fixture
def client_user(session: Session) -> User:
    user = User(email='jamie@example.com', name='Jamie Client', role=UserRole.CLIENT)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def other_client(session: Session) -> User:
    user = User(email='riley@example.com', name='Riley Client', role=UserRole.CLIENT)
    session.add(user)
    session.commit()
    return user


@pytest.fixture
def service(session: Session, trainer: Trainer) -> Service:
    service = Service(trainer_id=trainer.id, name='Strength Session', duration_minutes=60, price=Decimal('80.00'))
    session.add(service)
    session.commit()
    return service


@pytest.fixture
def monday_window(session: Session, trainer: Trainer) -> AvailabilityWindow:
    window = AvailabilityWindow(
        trainer_id=trainer.id,
        day_of_week=DayOfWeek.MONDAY,
        start_time='08:00',
        end_time='12:00',
    )
    session.add(window)
    session.commit()
    return window


@pytest.fixture
def add_appointment(session: Session, trainer: Trainer, client_user: User):
    def _add(
        start: datetime,
        end: datetime,
        status: AppointmentStatus = AppointmentStatus.CONFIRMED,
        client: User | None = None,
    ) -> Appointment:
        appointment = Appointment(
            trainer_id=trainer.id,
            client_id=(client or client_user).id,
            date=start.date(),
            start_time=start,
            end_time=end,
            status=status,
            price=Decimal('80.00'),
        )
        session.add(appointment)
        session.commit()
        return appointment

    return _add


@pytest.fixture
def notifier() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def api(database: Database, notifier: RecordingSink) -> Iterator[TestClient]:
    app = create_app(database=database, notifier=notifier)
    app.dependency_overrides[get_clock] = lambda: (lambda: NOW)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token = create_access_token(user.id, user.role.value)
        return {'Authorization': f'Bearer {token}'}

    return _headers
