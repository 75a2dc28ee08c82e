"""Admin maintenance API — database statistics and on-demand cleanup."""
# ruff: noqa: B008

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.admin.queries import get_database_stats
from agendamento.db.engine import get_session
from agendamento.schemas.auth import CurrentUser
from agendamento.security.auth import require_admin
from agendamento.security.retention import enforce_data_retention

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


class CleanupRequest(BaseModel):
    days: int | None = Field(default=None, ge=1, le=3650)


@router.get("/stats")
async def database_stats(
    db: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    return {"success": True, "data": await get_database_stats(db)}


@router.post("/cleanup")
async def cleanup(
    body: CleanupRequest | None = None,
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    """Purge data older than `days` right away."""
    days = body.days if body is not None else None
    logger.info("Manual cleanup requested by %s (days=%s)", admin.username, days or "default")
    summary = await enforce_data_retention(days, actor=admin.username)
    return {
        "success": True,
        "message": f"{summary['total_deleted']} registros removidos",
        "removedCount": summary["appointments_deleted"],
        "data": summary,
    }
