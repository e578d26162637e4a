from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Generator

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.core.config import Settings
from stockdesk.app.core.permissions import Action, is_allowed
from stockdesk.app.core.security import hash_token
from stockdesk.app.db.models.models_v1 import SessionToken, User
from stockdesk.app.db.session import SessionLocal

bearer_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def login_rate_limit(request: Request) -> None:
    request.app.state.rate_limiter.hit_login(client_key(request))


def _as_utc(dt: datetime) -> datetime:
    # SQLite renvoie des datetimes naïfs
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def get_current_token(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> SessionToken:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Access token required")

    token = db.execute(
        select(SessionToken).where(SessionToken.token_hash == hash_token(credentials.credentials))
    ).scalar_one_or_none()

    if not token or token.revoked_at is not None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if _as_utc(token.expires_at) <= datetime.now(timezone.utc):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if not token.user.is_active:
        raise HTTPException(status_code=401, detail="User is inactive")
    return token


def get_current_user(token: SessionToken = Depends(get_current_token)) -> User:
    return token.user


def require(action: Action) -> Callable[..., User]:
    """Dépendance FastAPI : utilisateur authentifié ET autorisé pour `action`."""

    def _checker(user: User = Depends(get_current_user)) -> User:
        if not is_allowed(user.role, action):
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _checker
