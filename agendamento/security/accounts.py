"""Account operations: login, password change and admin reset."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.errors import AuthenticationError, NotFound, ValidationError
from agendamento.events import emit
from agendamento.models.user import User
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.security.auth import hash_password, verify_password

logger = logging.getLogger(__name__)

# Same message for unknown user and wrong password
INVALID_CREDENTIALS = "Usuário ou senha incorretos"


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def authenticate(db: AsyncSession, username: str, password: str) -> User:
    """Return the account for valid credentials.

    Raises:
        AuthenticationError: Unknown username or wrong password.
    """
    user = await get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password):
        logger.warning("Failed login for %s", username)
        await emit(SystemEvent(
            event_type=EventType.AUTH_LOGIN_FAILED,
            actor_id=username,
            data={"known_user": user is not None},
            source_module="security.accounts",
        ))
        raise AuthenticationError(INVALID_CREDENTIALS)

    await emit(SystemEvent(
        event_type=EventType.AUTH_LOGIN,
        actor_id=user.username,
        actor_role=user.role,
        source_module="security.accounts",
    ))
    logger.info("Login: %s (role=%s cd=%s)", user.username, user.role, user.cd)
    return user


async def change_password(db: AsyncSession, caller: CurrentUser, new_password: str) -> None:
    """Set the caller's own password and clear the first-login flag."""
    minimum = settings.security.min_password_length
    if len(new_password) < minimum:
        raise ValidationError(f"Nova senha deve ter pelo menos {minimum} caracteres")

    user = await db.get(User, caller.id)
    if user is None:
        raise NotFound("Usuário não encontrado")

    user.password = hash_password(new_password)
    user.primeira_senha = False
    await db.flush()

    await emit(SystemEvent(
        event_type=EventType.PASSWORD_CHANGED,
        actor_id=caller.username,
        actor_role=caller.role.value,
        source_module="security.accounts",
    ))
    logger.info("Password changed for %s", caller.username)


async def reset_password(db: AsyncSession, admin: CurrentUser, username: str) -> None:
    """Put an account back on the default password; it must change it on next login."""
    user = await get_user_by_username(db, username)
    if user is None:
        raise NotFound("Usuário não encontrado")

    user.password = hash_password(settings.security.default_password)
    user.primeira_senha = True
    await db.flush()

    await emit(SystemEvent(
        event_type=EventType.PASSWORD_RESET,
        actor_id=admin.username,
        actor_role=admin.role.value,
        data={"username": username},
        source_module="security.accounts",
    ))
    logger.info("Password reset for %s by %s", username, admin.username)


async def list_users(db: AsyncSession) -> list[User]:
    result = await db.execute(select(User).order_by(User.username))
    return list(result.scalars().all())
