"""Default accounts created on first start against an empty usuarios table."""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.models.enums import ALL_CENTERS, UserRole
from agendamento.models.user import User
from agendamento.security.auth import hash_password

logger = logging.getLogger(__name__)

# (username, role, cd)
DEFAULT_USERS: list[tuple[str, UserRole, str]] = [
    ("Bahia", UserRole.INSTITUTION, "Bahia"),
    ("Pernambuco", UserRole.INSTITUTION, "Pernambuco"),
    ("LagoaNova", UserRole.INSTITUTION, "Lagoa Nova"),
    ("admin", UserRole.ADMIN, ALL_CENTERS),
    ("PCM", UserRole.CONSULTIVO, ALL_CENTERS),
    ("Compras", UserRole.CONSULTIVO, ALL_CENTERS),
    ("Transportes", UserRole.CONSULTIVO, ALL_CENTERS),
]


async def seed_default_users(db: AsyncSession) -> int:
    """Insert the default accounts if no account exists yet.

    Every seeded account gets the configured default password and must
    change it on first login. Returns the number of accounts created.
    """
    result = await db.execute(select(func.count(User.id)))
    if (result.scalar() or 0) > 0:
        return 0

    hashed = hash_password(settings.security.default_password)
    for username, role, cd in DEFAULT_USERS:
        db.add(User(
            username=username,
            password=hashed,
            role=role.value,
            cd=cd,
            primeira_senha=True,
        ))
    await db.flush()

    logger.info("Seeded %d default accounts", len(DEFAULT_USERS))
    return len(DEFAULT_USERS)
