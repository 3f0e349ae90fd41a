from __future__ import annotations

import uuid

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from fleet_ledger.core.logging import get_logger, log_event
from fleet_ledger.core.security import hash_password, verify_password
from fleet_ledger.modules.identity.models import User, UserRole

logger = get_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def get_user(session: Session, *, user_id: uuid.UUID) -> User | None:
    return session.get(User, user_id)


def get_user_by_email(session: Session, *, email: str) -> User | None:
    return session.scalar(select(User).where(User.email == _normalize_email(email)))


def list_users(session: Session) -> list[User]:
    return list(session.scalars(select(User).order_by(User.email)))


def create_user(
    session: Session,
    *,
    email: str,
    password: str,
    role: UserRole,
    full_name: str | None = None,
) -> User:
    email = _normalize_email(email)
    if get_user_by_email(session, email=email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")
    user = User(
        email=email,
        full_name=(full_name or "").strip() or None,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    log_event(logger, "identity.user.created", created_user_id=str(user.id), role=role.value)
    return user


def set_user_active(session: Session, *, user_id: uuid.UUID, is_active: bool) -> User:
    user = get_user(session, user_id=user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    user.is_active = is_active
    session.commit()
    session.refresh(user)
    log_event(
        logger, "identity.user.active_changed", target_user_id=str(user.id), is_active=is_active
    )
    return user


def authenticate_user(session: Session, *, email: str, password: str) -> User:
    user = get_user_by_email(session, email=email)
    # Same answer for unknown, inactive and wrong-password accounts
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        log_event(logger, "identity.login.rejected")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return user
