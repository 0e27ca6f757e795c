"""The authenticated caller, one variant per role."""

from dataclasses import dataclass

from trainer_booking.models.user import UserRole


@dataclass(frozen=True)
class TrainerActor:
    user_id: int
    role = UserRole.TRAINER


@dataclass(frozen=True)
class ClientActor:
    user_id: int
    role = UserRole.CLIENT


@dataclass(frozen=True)
class AdminActor:
    user_id: int
    role = UserRole.ADMIN


Actor = TrainerActor | ClientActor | AdminActor


def actor_from_claims(user_id: int, role: str | UserRole) -> Actor:
    match UserRole(role):
        case UserRole.TRAINER:
            return TrainerActor(user_id)
        case UserRole.CLIENT:
            return ClientActor(user_id)
        case UserRole.ADMIN:
            return AdminActor(user_id)
