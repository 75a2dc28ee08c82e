"""Request and response models for authentication and account management."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from agendamento.models.enums import UserRole


class CurrentUser(BaseModel):
    """Caller identity decoded from a bearer token."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID
    username: str
    role: UserRole
    centro_distribuicao: str


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nova_senha: str = Field(alias="novaSenha")


class ResetPasswordRequest(BaseModel):
    username: str = Field(min_length=1)


class UserOut(BaseModel):
    """Account summary, without the password hash."""

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: uuid.UUID
    username: str
    role: str
    centro_distribuicao: str = Field(validation_alias="cd")
    primeira_senha: bool
    created_at: datetime | None = None


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login realizado com sucesso"
    token: str
    user: UserOut
