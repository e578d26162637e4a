from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockdesk.app.api.deps import get_db, require
from stockdesk.app.core.permissions import Action
from stockdesk.app.core.security import hash_password
from stockdesk.app.db.models.core_types import Role
from stockdesk.app.db.models.models_v1 import User
from stockdesk.app.schemas.user import UserRead

router = APIRouter(prefix="/users")

# les comptes ADMIN ne se créent que par le seed
CREATABLE_ROLES = {Role.manager, Role.store_keeper, Role.sales_rep}


class UserCreate(BaseModel):
    username: str = Field(min_length=1, max_length=150)
    password: str = Field(min_length=6, max_length=72)
    role: Role


class UserStatusUpdate(BaseModel):
    is_active: bool


@router.get("", response_model=list[UserRead])
def list_users(db: Session = Depends(get_db), _: User = Depends(require(Action.user_admin))):
    return (
        db.execute(select(User).where(User.role != Role.admin).order_by(User.created_at.desc(), User.id.desc()))
        .scalars()
        .all()
    )


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    admin: User = Depends(require(Action.user_admin)),
):
    if payload.role not in CREATABLE_ROLES:
        raise HTTPException(status_code=400, detail="Invalid role")

    exists = db.execute(select(User).where(User.username == payload.username)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Username already exists")

    u = User(
        username=payload.username,
        password_hash=hash_password(payload.password),
        role=payload.role,
        is_active=True,
        created_by=admin.id,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


@router.patch("/{user_id}/status", response_model=UserRead)
def update_user_status(
    user_id: int,
    payload: UserStatusUpdate,
    db: Session = Depends(get_db),
    _: User = Depends(require(Action.user_admin)),
):
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    if u.role == Role.admin:
        raise HTTPException(status_code=400, detail="Admin accounts cannot be deactivated")

    u.is_active = payload.is_active
    db.commit()
    db.refresh(u)
    return u
