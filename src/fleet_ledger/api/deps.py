from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from fleet_ledger.core.db import db_session
from fleet_ledger.core.logging import set_user_context
from fleet_ledger.core.security import decode_access_token
from fleet_ledger.modules.identity.models import User, UserRole
from fleet_ledger.modules.identity.service import get_user

ACCESS_TOKEN_COOKIE = "access_token"

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def resolve_user(session: Session, token: str) -> User:
    """Map a bearer token to an active user or raise 401."""
    subject = decode_access_token(token)
    try:
        user_id = uuid.UUID(subject or "")
    except ValueError as e:
        raise _unauthorized("Invalid token") from e
    user = get_user(session, user_id=user_id)
    if not user or not user.is_active:
        raise _unauthorized("Invalid user")
    return user


def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(db_session),
) -> User:
    # Header wins; the cookie covers browser clients loading /uploads images
    token = credentials.credentials if credentials else request.cookies.get(ACCESS_TOKEN_COOKIE)
    if not token:
        raise _unauthorized("Authentication required")
    user = resolve_user(session, token)
    set_user_context(str(user.id))
    return user


def require_role(*roles: UserRole):
    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions"
            )
        return user

    return _checker
