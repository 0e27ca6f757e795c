"""Domain errors raised by the booking engine.

Each error carries a stable ``code`` and a ``details`` payload so the HTTP
layer can render a specific message without parsing strings.
"""

from enum import Enum
from typing import Any

from fastapi import status


class ConflictType(str, Enum):
    NONE = 'NONE'
    PAST_TIME = 'PAST_TIME'
    APPOINTMENT_OVERLAP = 'APPOINTMENT_OVERLAP'
    NO_AVAILABILITY = 'NO_AVAILABILITY'
    OUTSIDE_AVAILABILITY = 'OUTSIDE_AVAILABILITY'
    TRAINER_UNAVAILABLE = 'TRAINER_UNAVAILABLE'


class DomainError(Exception):
    """Base class for every error the engine reports to callers."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = 'DomainError'

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            'error': self.error,
            'code': self.code,
            'message': self.message,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(DomainError):
    """Malformed or missing input; ``details['fields']`` lists the offending fields."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = 'ValidationError'

    def __init__(self, message: str, field: str | None = None, code: str | None = None) -> None:
        fields = [{'field': field, 'message': message}] if field else []
        super().__init__(message, code=code, details={'fields': fields} if fields else None)
        self.field = field


class InvalidTimeFormat(ValidationError):
    pass


class NotFoundError(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error = 'NotFoundError'


class TrainerNotFound(NotFoundError):
    def __init__(self, trainer_id: int) -> None:
        super().__init__('Trainer not found or inactive.', details={'trainerId': trainer_id})


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error = 'ConflictError'


class BookingConflict(ConflictError):
    """A proposed booking was rejected; ``result`` is the conflict decision."""

    def __init__(self, result) -> None:
        self.result = result
        super().__init__(result.message, code=result.conflict_type.value, details=result.to_payload())

    @property
    def conflict_type(self) -> ConflictType:
        return self.result.conflict_type


class AuthorizationError(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error = 'AuthorizationError'

    def __init__(self, message: str = 'You are not allowed to perform this action.') -> None:
        super().__init__(message, code='Forbidden')


class InvalidTransition(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error = 'InvalidTransition'

    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            f'Cannot change appointment status from {current} to {target}.',
            details={'from': current, 'to': target},
        )


class CancellationWindowExpired(DomainError):
    status_code = 422
    error = 'CancellationWindowExpired'

    def __init__(self, hours: int) -> None:
        super().__init__(
            f'Appointments can only be cancelled at least {hours} hours in advance.',
            details={'cancellationWindowHours': hours},
        )


class InternalError(DomainError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = 'InternalError'

    def __init__(self, message: str = 'Internal server error.') -> None:
        super().__init__(message)
