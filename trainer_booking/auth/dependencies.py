from collections.abc import Callable, Iterator
from datetime import datetime

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from trainer_booking.auth import jwt_handler
from trainer_booking.auth.actor import Actor, actor_from_claims
from trainer_booking.core.calendar import utcnow
from trainer_booking.services.notifications import NotificationSink

security = HTTPBearer()


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()


def get_current_actor(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> Actor:
    token = credentials.credentials
    try:
        payload = jwt_handler.decode_access_token(token)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=401, detail="Invalid token") from exc

    subject = payload.get("sub")
    role = payload.get("role")
    if not subject or not role:
        raise HTTPException(status_code=401, detail="Invalid token subject")

    try:
        return actor_from_claims(int(subject), role)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail="Invalid token claims") from exc


def get_clock() -> Callable[[], datetime]:
    return utcnow


def get_notifier(request: Request) -> NotificationSink | None:
    return getattr(request.app.state, "notifier", None)
