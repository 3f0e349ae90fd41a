from __future__ import annotations

import uuid

from pydantic import BaseModel, EmailStr, Field

from fleet_ledger.core.schemas import CamelModel
from fleet_ledger.modules.identity.models import UserRole


class UserOut(CamelModel):
    id: uuid.UUID
    email: EmailStr
    full_name: str | None
    role: UserRole
    is_active: bool


class UserCreate(CamelModel):
    email: EmailStr
    full_name: str | None = None
    password: str = Field(min_length=1)
    role: UserRole = UserRole.CREW


class UserActiveIn(CamelModel):
    is_active: bool


# OAuth2 password flow response; field names are fixed by the protocol
class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
