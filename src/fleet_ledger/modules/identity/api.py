from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from fleet_ledger.api.deps import get_current_user, require_role
from fleet_ledger.core.db import db_session
from fleet_ledger.core.security import create_access_token
from fleet_ledger.modules.identity.models import User, UserRole
from fleet_ledger.modules.identity.schemas import TokenOut, UserActiveIn, UserCreate, UserOut
from fleet_ledger.modules.identity.service import (
    authenticate_user,
    create_user,
    list_users,
    set_user_active,
)

router = APIRouter(tags=["identity"])

_admin_only = require_role(UserRole.ADMIN)


@router.post("/auth/token", response_model=TokenOut)
def issue_token(
    form_data: OAuth2PasswordRequestForm = Depends(),
    session: Session = Depends(db_session),
) -> TokenOut:
    user = authenticate_user(session, email=form_data.username, password=form_data.password)
    return TokenOut(access_token=create_access_token(subject=str(user.id)))


@router.get("/auth/me", response_model=UserOut)
def who_am_i(user: User = Depends(get_current_user)) -> UserOut:
    return UserOut.model_validate(user, from_attributes=True)


@router.get("/users", response_model=list[UserOut])
def list_users_endpoint(
    session: Session = Depends(db_session),
    _: User = Depends(_admin_only),
) -> list[UserOut]:
    return [UserOut.model_validate(u, from_attributes=True) for u in list_users(session)]


@router.post("/users", response_model=UserOut)
def create_user_endpoint(
    payload: UserCreate,
    session: Session = Depends(db_session),
    _: User = Depends(_admin_only),
) -> UserOut:
    user = create_user(
        session,
        email=str(payload.email),
        password=payload.password,
        role=payload.role,
        full_name=payload.full_name,
    )
    return UserOut.model_validate(user, from_attributes=True)


@router.patch("/users/{user_id}", response_model=UserOut)
def set_user_active_endpoint(
    user_id: uuid.UUID,
    payload: UserActiveIn,
    session: Session = Depends(db_session),
    _: User = Depends(_admin_only),
) -> UserOut:
    user = set_user_active(session, user_id=user_id, is_active=payload.is_active)
    return UserOut.model_validate(user, from_attributes=True)
