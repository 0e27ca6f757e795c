from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from threading import Lock

from sqlalchemy import DateTime, create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.types import TypeDecorator

from trainer_booking.core import config


Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Stores instants as naive UTC and hands them back timezone-aware."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Database:
    """Owns the engine and session factory for one application instance.

    Constructed by the application entry point and handed to whatever needs
    a session; nothing in the package keeps a module-level engine.
    """

    def __init__(self, url: str | None = None, engine: Engine | None = None, **engine_kwargs) -> None:
        self.url = url or config.DATABASE_URL
        if engine is None:
            if self.url.startswith('sqlite'):
                connect_args = engine_kwargs.pop('connect_args', {})
                connect_args.setdefault('check_same_thread', False)
                connect_args.setdefault('timeout', config.SQLITE_BUSY_TIMEOUT_SECONDS)
                engine_kwargs['connect_args'] = connect_args
            engine_kwargs.setdefault('echo', config.DATABASE_ECHO)
            engine = create_engine(self.url, **engine_kwargs)
        self.engine = engine
        self.session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )
        self._schema_lock = Lock()
        self._schema_checked = False

    def create_all(self) -> None:
        # models register themselves on Base when imported
        from trainer_booking.models import appointment, availability, service, trainer, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        self.ensure_schema()

    def ensure_schema(self) -> None:
        if self._schema_checked:
            return

        with self._schema_lock:
            if self._schema_checked:
                return

            inspector = inspect(self.engine)
            if 'appointments' not in inspector.get_table_names():
                self._schema_checked = True
                return

            existing_columns = {column['name'] for column in inspector.get_columns('trainers')}
            with self.engine.begin() as connection:
                if 'booking_version' not in existing_columns:
                    connection.execute(
                        text('ALTER TABLE trainers ADD COLUMN booking_version INTEGER NOT NULL DEFAULT 0')
                    )
                connection.execute(
                    text(
                        'CREATE UNIQUE INDEX IF NOT EXISTS uq_appointments_active_trainer_start '
                        "ON appointments(trainer_id, start_time) WHERE status IN ('PENDING', 'CONFIRMED')"
                    )
                )
                connection.execute(
                    text('CREATE INDEX IF NOT EXISTS idx_appointments_trainer_range ON appointments(trainer_id, start_time, end_time)')
                )

            self._schema_checked = True

    def session(self) -> Session:
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        db = self.session_factory()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        self.engine.dispose()
