import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from trainer_booking.core import config
from trainer_booking.core.errors import BookingConflict, DomainError, InternalError
from trainer_booking.database import Database
from trainer_booking.routes import appointment_routes, availability_routes
from trainer_booking.services.notifications import LoggingNotificationSink, NotificationSink

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(BookingConflict)
    async def booking_conflict_handler(request: Request, exc: BookingConflict) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={'error': exc.error, 'code': exc.code, **exc.result.to_payload()},
        )

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(SQLAlchemyError)
    async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception('Unhandled database error on %s %s', request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content=error.to_payload())


def create_app(database: Database | None = None, notifier: NotificationSink | None = None) -> FastAPI:
    logging.basicConfig(level=config.LOG_LEVEL)
    config.validate_runtime_config()

    app = FastAPI(title='Trainer Booking API')
    app.state.database = database or Database()
    app.state.notifier = notifier or LoggingNotificationSink()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=['*'],
        allow_headers=['*'],
    )

    @app.on_event('startup')
    def initialize_database() -> None:
        try:
            app.state.database.create_all()
        except SQLAlchemyError:
            logger.exception('Database initialization failed. Check DATABASE_URL.')

    @app.get('/')
    def root():
        return {'status': 'Trainer Booking API Running'}

    register_error_handlers(app)
    app.include_router(availability_routes.router)
    app.include_router(appointment_routes.router)
    return app


app = create_app()
