"""Bearer-token authentication and role gates.

Passwords are bcrypt hashes (passlib); tokens are HS256 JWTs (python-jose)
carrying the caller's id, username, role and assigned center.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError as PydanticValidationError

from agendamento.config import settings
from agendamento.errors import AuthenticationError, Forbidden, ServiceUnavailable
from agendamento.models.enums import UserRole
from agendamento.models.user import User
from agendamento.schemas.auth import CurrentUser

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

bearer_scheme = HTTPBearer(auto_error=False)


# ── Passwords ────────────────────────────────────────────────────────


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against its bcrypt hash. Malformed hashes never match."""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Stored password hash could not be parsed")
        return False


# ── Tokens ───────────────────────────────────────────────────────────


def _secret() -> str:
    secret = settings.security.jwt_secret
    if not secret:
        raise ServiceUnavailable("JWT_SECRET not configured")
    return secret


def create_access_token(user: User, now: datetime | None = None) -> str:
    """Sign a token for `user`, valid for TOKEN_EXPIRE_HOURS."""
    issued = now or datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": str(user.id),
        "id": str(user.id),
        "username": user.username,
        "role": user.role,
        "centro_distribuicao": user.cd,
        "iat": int(issued.timestamp()),
        "exp": int((issued + timedelta(hours=settings.security.token_expire_hours)).timestamp()),
    }
    return jwt.encode(claims, _secret(), algorithm=settings.security.jwt_algorithm)


def decode_access_token(token: str) -> CurrentUser:
    """Verify signature and expiry, and return the caller identity.

    Raises:
        AuthenticationError: If the token is invalid, expired or malformed.
    """
    try:
        claims = jwt.decode(token, _secret(), algorithms=[settings.security.jwt_algorithm])
        return CurrentUser(
            id=claims["id"],
            username=claims["username"],
            role=claims["role"],
            centro_distribuicao=claims["centro_distribuicao"],
        )
    except (JWTError, KeyError, PydanticValidationError) as e:
        logger.warning("JWT verification failed: %s", e)
        raise AuthenticationError("Token inválido") from e


# ── FastAPI dependencies ─────────────────────────────────────────────


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),  # noqa: B008
) -> CurrentUser:
    """Resolve the bearer token on the request; 401 when absent or invalid."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Token não fornecido")
    return decode_access_token(credentials.credentials)


def require_roles(*roles: UserRole):
    """Build a dependency that admits only the given roles (403 otherwise)."""
    allowed = frozenset(roles)

    async def _check(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:  # noqa: B008
        if user.role not in allowed:
            logger.warning(
                "Forbidden: %s (role=%s) needs one of %s",
                user.username,
                user.role.value,
                sorted(r.value for r in allowed),
            )
            raise Forbidden(f"Acesso negado para o perfil {user.role.value}")
        return user

    return _check


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.INSTITUTION)
