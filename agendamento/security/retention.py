"""Data retention enforcement — periodic purge of old scheduling data.

Retention tiers:
- Appointments: requested more than RETENTION_DAYS ago (default 30)
- Blocked windows: dated more than RETENTION_DAYS ago
- Audit logs: older than AUDIT_RETENTION_MONTHS (default 24)

Runs monthly through an APScheduler cron job started by the FastAPI
lifespan; admins can also trigger it on demand with a custom day threshold.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.db.engine import async_session_factory
from agendamento.events import emit
from agendamento.models.appointment import Appointment
from agendamento.models.audit import AuditLog
from agendamento.models.time_block import TimeBlock
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.scheduling.slots import today_local

logger = logging.getLogger(__name__)

RETENTION_JOB_ID = "data_retention"


async def enforce_data_retention(days: int | None = None, actor: str = "system") -> dict[str, int]:
    """Run all retention policies in one transaction. Returns a summary dict.

    Idempotent: running twice is harmless. Errors propagate to the caller.
    """
    days = settings.retention_days if days is None else days
    summary: dict[str, int] = {
        "appointments_deleted": 0,
        "blocks_deleted": 0,
        "audit_logs_deleted": 0,
    }

    async with async_session_factory() as db:
        summary["appointments_deleted"] = await _delete_expired_appointments(db, days)
        summary["blocks_deleted"] = await _delete_expired_blocks(db, days)
        summary["audit_logs_deleted"] = await _delete_expired_audit_logs(db)
        await db.commit()

    summary["total_deleted"] = sum(summary.values())

    await emit(SystemEvent(
        event_type=EventType.SYSTEM_MAINTENANCE,
        actor_id=actor,
        data={"action": "data_retention", "days": days, **summary},
        source_module="security.retention",
    ))

    logger.info(
        "Retention job complete: appointments=%d blocks=%d audit=%d (days=%d)",
        summary["appointments_deleted"],
        summary["blocks_deleted"],
        summary["audit_logs_deleted"],
        days,
    )
    return summary


async def run_scheduled_retention() -> None:
    """Scheduler entry point. A failed run is logged and retried at the next fire time."""
    try:
        await enforce_data_retention()
    except Exception:
        logger.exception("Data retention job failed")


def build_retention_scheduler() -> AsyncIOScheduler:
    """Scheduler with the retention job registered on RETENTION_CRON (local time).

    The caller owns `start()` and `shutdown()`.
    """
    tz = settings.scheduling.timezone
    scheduler = AsyncIOScheduler(timezone=tz)
    scheduler.add_job(
        run_scheduled_retention,
        CronTrigger.from_crontab(settings.retention_cron, timezone=tz),
        id=RETENTION_JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    return scheduler


async def _delete_expired_appointments(db: AsyncSession, days: int) -> int:
    cutoff = datetime.now(UTC) - timedelta(days=days)
    del_result = await db.execute(
        delete(Appointment).where(Appointment.data_solicitacao < cutoff)
    )
    count = del_result.rowcount  # type: ignore[attr-defined]
    logger.info("Deleted %d appointments (cutoff=%s)", count, cutoff.date())
    return count


async def _delete_expired_blocks(db: AsyncSession, days: int) -> int:
    cutoff = today_local() - timedelta(days=days)
    del_result = await db.execute(
        delete(TimeBlock).where(TimeBlock.data_bloqueio < cutoff)
    )
    count = del_result.rowcount  # type: ignore[attr-defined]
    if count > 0:
        logger.info("Deleted %d blocked windows (cutoff=%s)", count, cutoff)
    return count


async def _delete_expired_audit_logs(db: AsyncSession) -> int:
    """Delete audit logs older than AUDIT_RETENTION_MONTHS."""
    cutoff = datetime.now(UTC) - timedelta(days=settings.audit_retention_months * 30)
    del_result = await db.execute(
        delete(AuditLog).where(AuditLog.created_at < cutoff)
    )
    count = del_result.rowcount  # type: ignore[attr-defined]
    if count > 0:
        logger.info("Deleted %d audit log entries (cutoff=%s)", count, cutoff.date())
    return count
