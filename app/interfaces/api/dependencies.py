"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from app.application.use_cases.notifications import NotificationService
from app.config import Settings
from app.infrastructure.security import decode_access_token

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token")


def get_app_settings(request: Request) -> Settings:
    """Return the settings the running application was built with."""

    return request.app.state.settings


def get_notification_service(request: Request) -> NotificationService:
    """Return the notification service wired at application start."""

    return request.app.state.notification_service


def resolve_user_id(token: str, settings: Settings) -> str:
    """Resolve the authenticated user identifier carried by ``token``."""

    try:
        payload = decode_access_token(token, secret_key=settings.secret_key)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return subject


def get_current_user_id(
    token: str = Depends(oauth2_scheme),
    settings: Settings = Depends(get_app_settings),
) -> str:
    """Return the identifier of the user the bearer token was issued to."""

    return resolve_user_id(token, settings)
