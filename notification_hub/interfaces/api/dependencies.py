"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session, sessionmaker

from notification_hub.application.background import BackgroundWorkQueue
from notification_hub.domain.entities import User
from notification_hub.infrastructure.database import SessionLocal, get_db
from notification_hub.infrastructure.notifications import (
    LiveChannelRegistry,
    NotificationPublisher,
)
from notification_hub.infrastructure.repositories import UserRepository
from notification_hub.infrastructure.security import user_id_from_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def _unauthorized(detail: str = "Credenciales inválidas") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_current_user(token: str, db: Session) -> User:
    """Resolve the authenticated user for the provided token."""

    try:
        user_id = user_id_from_token(token)
    except ValueError as exc:
        raise _unauthorized() from exc

    user = UserRepository(db).get(user_id)
    if user is None:
        raise _unauthorized("Usuario no encontrado")
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Return the authenticated user from the provided token."""

    return resolve_current_user(token, db)


def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    """Ensure the authenticated user is active."""

    if not current_user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Usuario inactivo",
        )
    return current_user


def require_admin(current_user: User = Depends(get_current_active_user)) -> User:
    """Ensure the authenticated user has administrator privileges."""

    if not current_user.is_admin():
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No autorizado",
        )
    return current_user


def get_channel_registry(request: Request) -> LiveChannelRegistry:
    return request.app.state.channel_registry


def get_publisher(request: Request) -> NotificationPublisher:
    return request.app.state.notification_publisher


def get_work_queue(request: Request) -> BackgroundWorkQueue:
    return request.app.state.work_queue


def get_session_factory() -> sessionmaker:
    """Return the factory used by work that outlives the request session."""

    return SessionLocal

