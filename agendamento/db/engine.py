"""Database and Redis handles shared by the whole service.

One asyncpg-backed SQLAlchemy engine, the session factory every request and
background job draws from, and the Redis client used by the rate limiter.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncGenerator

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from agendamento.config import settings

logger = logging.getLogger(__name__)

# ── PostgreSQL ───────────────────────────────────────────────────────

engine: AsyncEngine = create_async_engine(
    settings.db.database_url,
    echo=settings.db.echo_sql,
    pool_size=settings.db.pool_size,
    max_overflow=settings.db.max_overflow,
    pool_pre_ping=True,
    pool_recycle=3600,
)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Per-request session: commit on success, roll back on any error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# ── Redis ────────────────────────────────────────────────────────────

redis_client: aioredis.Redis = aioredis.from_url(settings.db.redis_url, decode_responses=True)


# ── Startup / shutdown ───────────────────────────────────────────────


async def create_schema() -> None:
    """Create missing tables outside production (Alembic owns production)."""
    from agendamento.models import Base

    async with engine.begin() as conn:
        if settings.is_production:
            return
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Schema ensured (%d tables)", len(Base.metadata.tables))


async def seed_accounts() -> None:
    from agendamento.db.seed import seed_default_users

    async with async_session_factory() as session:
        await seed_default_users(session)
        await session.commit()


@contextlib.asynccontextmanager
async def db_lifespan() -> AsyncGenerator[None, None]:
    """Open the database for the app's lifetime; dispose pools on exit."""
    await create_schema()
    await seed_accounts()
    try:
        yield
    finally:
        await engine.dispose()
        await redis_client.aclose()
