"""Authentication and account management API."""
# ruff: noqa: B008

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.db.engine import get_session
from agendamento.schemas.auth import (
    ChangePasswordRequest,
    CurrentUser,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
    UserOut,
)
from agendamento.security import accounts
from agendamento.security.auth import create_access_token, get_current_user, require_admin
from agendamento.security.rate_limiter import client_address, login_key, rate_limiter

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> LoginResponse:
    """Exchange username/password for a bearer token."""
    key = login_key(body.username, client_address(request))
    await rate_limiter.enforce(key, settings.rate_limit.login_limit, settings.rate_limit.login_window)

    user = await accounts.authenticate(db, body.username, body.password)
    await rate_limiter.reset(key)

    return LoginResponse(token=create_access_token(user), user=UserOut.model_validate(user))


@router.post("/change-password")
async def change_password(
    body: ChangePasswordRequest,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    await accounts.change_password(db, user, body.nova_senha)
    return {"success": True, "message": "Senha alterada com sucesso"}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    await accounts.reset_password(db, admin, body.username)
    return {"success": True, "message": "Senha resetada para a senha padrão"}


@router.get("/users")
async def list_users(
    db: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    users = await accounts.list_users(db)
    return {
        "success": True,
        "users": [UserOut.model_validate(u).model_dump(mode="json") for u in users],
    }


@router.get("/validate")
async def validate_token(user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return {"valid": True, "user": user.model_dump(mode="json")}
