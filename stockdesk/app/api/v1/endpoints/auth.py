from __future__ import annotations

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.api.deps import (
    get_app_settings,
    get_current_token,
    get_current_user,
    get_db,
    login_rate_limit,
)
from stockdesk.app.core.config import Settings
from stockdesk.app.core.logging_config import get_logger
from stockdesk.app.core.security import hash_token, new_session_token, verify_password
from stockdesk.app.db.models.models_v1 import SessionToken, User
from stockdesk.app.schemas.user import UserRead

router = APIRouter(prefix="/auth")
log = get_logger(__name__)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=1)


@router.post("/login", dependencies=[Depends(login_rate_limit)])
def login(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    user = db.execute(select(User).where(User.username == payload.username)).scalar_one_or_none()

    # même message pour user inconnu / mauvais mot de passe
    if not user or not verify_password(payload.password, user.password_hash):
        log.info("login failed username=%s", payload.username)
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is inactive")

    raw = new_session_token()
    expires_at = datetime.now(timezone.utc) + timedelta(hours=settings.token_ttl_hours)
    db.add(SessionToken(user_id=user.id, token_hash=hash_token(raw), expires_at=expires_at))
    db.commit()

    return {
        "access_token": raw,
        "token_type": "bearer",
        "expires_at": expires_at,
        "user": UserRead.model_validate(user).model_dump(),
    }


@router.post("/logout")
def logout(token: SessionToken = Depends(get_current_token), db: Session = Depends(get_db)):
    token.revoked_at = datetime.now(timezone.utc)
    db.commit()
    return {"ok": True}


@router.get("/me", response_model=UserRead)
def me(user: User = Depends(get_current_user)):
    return user
