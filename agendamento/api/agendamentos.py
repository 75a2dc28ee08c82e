"""Appointments API — public booking plus the staff dashboards' endpoints.

Static paths are declared before `/{appointment_id}` so they are never
captured as an id.
"""
# ruff: noqa: B008

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.admin.queries import get_appointment_statistics, get_report_rows
from agendamento.db.engine import get_session
from agendamento.errors import ValidationError
from agendamento.models.appointment import Appointment
from agendamento.schemas.agendamento import (
    AppointmentCreate,
    AppointmentOut,
    SlotSuggestion,
    StatusUpdate,
)
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.bloqueio import BlockCreate, BlockOut
from agendamento.scheduling.blocks import block_service
from agendamento.scheduling.service import appointment_service
from agendamento.scheduling.slots import is_known_center
from agendamento.security.auth import get_current_user, require_admin, require_staff
from agendamento.security.rate_limiter import limit_public_create

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/agendamentos", tags=["agendamentos"])


def _out(appointment: Appointment) -> dict[str, Any]:
    return AppointmentOut.model_validate(appointment).model_dump(mode="json")


# ── Public ───────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_201_CREATED, dependencies=[Depends(limit_public_create)])
async def create_appointment(
    body: AppointmentCreate,
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Request a delivery slot. No account needed."""
    appointment = await appointment_service.create_appointment(db, body)
    return {
        "success": True,
        "message": "Agendamento criado com sucesso",
        "data": _out(appointment),
    }


@router.get("/horarios-disponiveis")
async def available_slots(
    data: date = Query(description="Delivery date (YYYY-MM-DD)"),
    cd: str = Query(alias="centroDistribuicao", description="Distribution center"),
    db: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    if not is_known_center(cd):
        raise ValidationError(f"Centro de distribuição inválido: {cd}")
    slots = await appointment_service.available_slots(db, cd, data)
    return {"success": True, "data": slots}


# ── Listings ─────────────────────────────────────────────────────────


@router.get("")
async def list_appointments(
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    appointments = await appointment_service.list_appointments(db, user)
    return {"success": True, "data": [_out(a) for a in appointments], "total": len(appointments)}


# ── Blocked windows ──────────────────────────────────────────────────


@router.post("/bloquear-horarios", status_code=status.HTTP_201_CREATED)
async def create_block(
    body: BlockCreate,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(require_staff),
) -> dict[str, Any]:
    block = await block_service.create_block(db, user, body)
    return {
        "success": True,
        "message": "Horário bloqueado com sucesso",
        "data": BlockOut.model_validate(block).model_dump(mode="json"),
    }


@router.get("/bloqueios")
async def list_blocks(
    data: date | None = Query(default=None),
    centro: str | None = Query(default=None, alias="centroDistribuicao"),
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(require_staff),
) -> dict[str, Any]:
    blocks = await block_service.list_blocks(db, user, data, centro)
    return {"success": True, "data": blocks}


@router.delete("/bloqueios/{block_id}")
async def delete_block(
    block_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(require_staff),
) -> dict[str, Any]:
    await block_service.delete_block(db, user, block_id)
    return {"success": True, "message": "Bloqueio removido com sucesso"}


# ── Reports (admin) ──────────────────────────────────────────────────


@router.get("/relatorios")
async def report(
    data_inicio: date | None = Query(default=None, alias="dataInicio"),
    data_fim: date | None = Query(default=None, alias="dataFim"),
    centro: str | None = Query(default=None, alias="centroDistribuicao"),
    db: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    """Appointments filtered by request date and center."""
    rows = await get_report_rows(db, data_inicio, data_fim, centro)
    return {"success": True, "data": [_out(a) for a in rows], "total": len(rows)}


@router.get("/relatorios/estatisticas")
async def report_statistics(
    db: AsyncSession = Depends(get_session),
    admin: CurrentUser = Depends(require_admin),
) -> dict[str, Any]:
    return {"success": True, "data": await get_appointment_statistics(db)}


# ── Single appointment ───────────────────────────────────────────────


@router.get("/{appointment_id}")
async def get_appointment(
    appointment_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    appointment = await appointment_service.get_appointment(db, user, appointment_id)
    return {"success": True, "data": _out(appointment)}


@router.patch("/{appointment_id}/status")
async def update_status(
    appointment_id: uuid.UUID,
    body: StatusUpdate,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    appointment = await appointment_service.update_status(
        db, user, appointment_id, body.status, body.observacoes
    )
    return {"success": True, "message": "Status atualizado com sucesso", "data": _out(appointment)}


@router.patch("/{appointment_id}/sugerir-horario")
async def suggest_slot(
    appointment_id: uuid.UUID,
    body: SlotSuggestion,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    appointment = await appointment_service.suggest_new_slot(
        db, user, appointment_id, body.data_entrega, body.horario_entrega, body.observacoes
    )
    return {"success": True, "message": "Sugestão de horário enviada", "data": _out(appointment)}
