from trainer_booking.core.errors import (
    AuthorizationError,
    BookingConflict,
    CancellationWindowExpired,
    ConflictType,
    TrainerNotFound,
    ValidationError,
)
from trainer_booking.services.conflict_checker import ConflictResult


def test_validation_error_payload_lists_offending_field() -> None:
    error = ValidationError('Start time must be before end time.', field='endTime')

    assert error.status_code == 400
    assert error.to_payload() == {
        'error': 'ValidationError',
        'code': 'ValidationError',
        'message': 'Start time must be before end time.',
        'details': {'fields': [{'field': 'endTime', 'message': 'Start time must be before end time.'}]},
    }


def test_booking_conflict_carries_conflict_type_as_code() -> None:
    result = ConflictResult(ConflictType.PAST_TIME, 'Cannot book a date/time in the past.')

    error = BookingConflict(result)

    assert error.status_code == 409
    assert error.code == 'PAST_TIME'
    assert error.conflict_type is ConflictType.PAST_TIME
    assert error.details['hasConflict'] is True


def test_authorization_error_message_is_generic() -> None:
    error = AuthorizationError()

    assert error.status_code == 403
    assert error.code == 'Forbidden'
    assert 'not found' not in error.message.lower()


def test_trainer_not_found_reports_trainer_id() -> None:
    error = TrainerNotFound(42)

    assert error.status_code == 404
    assert error.details == {'trainerId': 42}


def test_cancellation_window_expired_is_unprocessable() -> None:
    error = CancellationWindowExpired(24)

    assert error.status_code == 422
    assert error.to_payload()['details'] == {'cancellationWindowHours': 24}
