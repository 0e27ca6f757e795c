from sqlalchemy import select
from sqlalchemy.orm import Session

from trainer_booking.auth.actor import Actor, ClientActor, TrainerActor
from trainer_booking.core.errors import AuthorizationError
from trainer_booking.models.trainer import Trainer


def trainer_id_for_actor(db: Session, actor: Actor) -> int | None:
    if not isinstance(actor, TrainerActor):
        return None
    return db.scalar(select(Trainer.id).where(Trainer.user_id == actor.user_id))


def owns_trainer(db: Session, actor: Actor, trainer_id: int) -> bool:
    return trainer_id_for_actor(db, actor) == trainer_id


def require_trainer_owner(db: Session, actor: Actor, trainer_id: int) -> None:
    if not owns_trainer(db, actor, trainer_id):
        raise AuthorizationError('Only the trainer can manage this calendar.')


def require_booking_party(db: Session, actor: Actor, trainer_id: int, client_id: int) -> None:
    """Clients book for themselves; trainers book into their own calendar."""
    match actor:
        case ClientActor(user_id=user_id):
            allowed = user_id == client_id
        case TrainerActor():
            allowed = owns_trainer(db, actor, trainer_id)
        case _:
            allowed = False
    if not allowed:
        raise AuthorizationError()
