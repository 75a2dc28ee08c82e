"""Redis-backed fixed-window rate limiter, keyed by caller identity.

Uses INCR + EXPIRE. Keys carry the identity being limited (client address,
username) so limits are per caller and survive process restarts and
multiple workers.

Usage:
    from agendamento.security.rate_limiter import rate_limiter

    allowed, retry_after = await rate_limiter.check("rate:login:bahia:10.0.0.1", limit=5, window=900)
"""

from __future__ import annotations

import logging

from fastapi import Request

from agendamento.config import settings
from agendamento.db.engine import redis_client
from agendamento.errors import RateLimited

logger = logging.getLogger(__name__)


class RateLimiter:
    """Fixed-window rate limiter backed by Redis INCR + EXPIRE."""

    def __init__(self, redis: object) -> None:
        self._redis = redis

    async def check(self, key: str, limit: int, window: int) -> tuple[bool, int]:
        """Count one hit against `key`.

        Returns:
            (allowed, retry_after); retry_after is seconds until the window
            resets, 0 when allowed.
        """
        try:
            count = await self._redis.incr(key)
            if count == 1:
                await self._redis.expire(key, window)

            if count > limit:
                ttl = await self._redis.ttl(key)
                return False, max(ttl, 1)

            return True, 0
        except Exception:
            logger.exception("Rate limiter Redis error for key %s", key)
            # Fail open
            return True, 0

    async def enforce(self, key: str, limit: int, window: int) -> None:
        """Like `check`, but raise RateLimited when over the limit."""
        allowed, retry_after = await self.check(key, limit, window)
        if not allowed:
            logger.warning("Rate limit exceeded for %s (retry in %ds)", key, retry_after)
            raise RateLimited(retry_after)

    async def reset(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except Exception:
            logger.exception("Rate limiter Redis error resetting %s", key)


def client_address(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def login_key(username: str, address: str) -> str:
    return f"rate:login:{username.lower()}:{address}"


def create_key(address: str) -> str:
    return f"rate:create:{address}"


async def limit_public_create(request: Request) -> None:
    """FastAPI dependency for the unauthenticated booking endpoint."""
    await rate_limiter.enforce(
        create_key(client_address(request)),
        limit=settings.rate_limit.create_limit,
        window=settings.rate_limit.create_window,
    )


# Module-level singleton
rate_limiter = RateLimiter(redis_client)
