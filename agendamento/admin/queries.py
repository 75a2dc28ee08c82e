"""Query functions for the admin reports and maintenance endpoints."""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any

from sqlalchemy import Date, cast, func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.db.engine import async_session_factory, redis_client
from agendamento.models.appointment import Appointment
from agendamento.models.time_block import TimeBlock
from agendamento.models.user import User
from agendamento.scheduling.slots import today_local

logger = logging.getLogger(__name__)


async def get_report_rows(
    db: AsyncSession,
    data_inicio: date | None = None,
    data_fim: date | None = None,
    centro: str | None = None,
) -> list[Appointment]:
    """Appointments filtered by request-date range (inclusive) and center,
    newest request first."""
    query = select(Appointment)
    requested_on = cast(Appointment.data_solicitacao, Date)

    if data_inicio:
        query = query.where(requested_on >= data_inicio)
    if data_fim:
        query = query.where(requested_on <= data_fim)
    if centro:
        query = query.where(Appointment.centro_distribuicao == centro)

    result = await db.execute(query.order_by(Appointment.data_solicitacao.desc()))
    return list(result.scalars().all())


async def get_appointment_statistics(db: AsyncSession) -> dict[str, Any]:
    """Totals by status and by center, plus deliveries scheduled for today."""
    result = await db.execute(select(func.count(Appointment.id)))
    total = result.scalar() or 0

    result = await db.execute(
        select(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status)
    )
    por_status = [{"status": s, "total": n} for s, n in result.all()]

    result = await db.execute(
        select(Appointment.centro_distribuicao, func.count(Appointment.id))
        .group_by(Appointment.centro_distribuicao)
    )
    por_cd = [{"centro_distribuicao": cd, "total": n} for cd, n in result.all()]

    result = await db.execute(
        select(func.count(Appointment.id)).where(Appointment.data_entrega == today_local())
    )
    hoje = result.scalar() or 0

    return {
        "total": total,
        "porStatus": por_status,
        "porCD": por_cd,
        "agendamentosHoje": hoje,
    }


async def get_database_stats(db: AsyncSession) -> dict[str, Any]:
    """Row counts, distributions and on-disk size of the database."""
    result = await db.execute(select(func.count(User.id)))
    total_users = result.scalar() or 0

    result = await db.execute(select(func.count(Appointment.id)))
    total_agendamentos = result.scalar() or 0

    result = await db.execute(select(func.count(TimeBlock.id)))
    total_bloqueios = result.scalar() or 0

    result = await db.execute(
        select(Appointment.status, func.count(Appointment.id)).group_by(Appointment.status)
    )
    status_distribution = [{"status": s, "count": n} for s, n in result.all()]

    result = await db.execute(
        select(Appointment.centro_distribuicao, func.count(Appointment.id))
        .group_by(Appointment.centro_distribuicao)
    )
    centro_distribution = [{"centro_distribuicao": cd, "count": n} for cd, n in result.all()]

    result = await db.execute(text("SELECT pg_database_size(current_database())"))
    size = result.scalar() or 0

    return {
        "totalUsers": total_users,
        "totalAgendamentos": total_agendamentos,
        "totalBloqueios": total_bloqueios,
        "statusDistribution": status_distribution,
        "centroDistribution": centro_distribution,
        "databaseSize": size,
        "databaseSizeFormatted": format_bytes(size),
    }


def format_bytes(size: int, decimals: int = 2) -> str:
    """1536 -> "1.5 KB"."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    value = float(size)
    i = 0
    while value >= 1024 and i < len(units) - 1:
        value /= 1024
        i += 1
    return f"{round(value, decimals):g} {units[i]}"


async def check_system_health() -> dict[str, Any]:
    """Check PostgreSQL and Redis health with latency measurements."""
    health: dict[str, Any] = {}

    # PostgreSQL
    try:
        t0 = time.monotonic()
        async with async_session_factory() as db:
            await db.execute(text("SELECT 1"))
        ms = int((time.monotonic() - t0) * 1000)
        health["postgresql"] = {"status": "ok", "latency_ms": ms}
    except Exception as exc:
        health["postgresql"] = {"status": "error", "error": str(exc)}

    # Redis
    try:
        t0 = time.monotonic()
        await redis_client.ping()
        ms = int((time.monotonic() - t0) * 1000)
        health["redis"] = {"status": "ok", "latency_ms": ms}
    except Exception as exc:
        health["redis"] = {"status": "error", "error": str(exc)}

    return health
