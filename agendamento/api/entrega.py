"""Delivery confirmation API for CD staff."""
# ruff: noqa: B008

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.db.engine import get_session
from agendamento.schemas.agendamento import AppointmentOut
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.entrega import DeliveryConfirmation
from agendamento.scheduling.delivery import delivery_service
from agendamento.security.auth import get_current_user

router = APIRouter(prefix="/entrega", tags=["entrega"])

_OUTCOME_LABELS = {
    "arrived": "Compareceu",
    "no_show": "Não compareceu",
    "arrived_late": "Compareceu com atraso",
}


@router.get("/hoje")
async def deliveries_today(
    centro: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    rows = await delivery_service.deliveries_today(db, user, centro)
    data = [AppointmentOut.model_validate(a).model_dump(mode="json") for a in rows]
    return {"success": True, "data": data, "total": len(data)}


@router.get("/pendentes")
async def pending_deliveries(
    centro: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    rows = await delivery_service.pending_deliveries(db, user, centro)
    data = [AppointmentOut.model_validate(a).model_dump(mode="json") for a in rows]
    return {"success": True, "data": data, "total": len(data)}


@router.get("/estatisticas")
async def attendance_statistics(
    periodo: int | None = Query(default=None, ge=1, le=3650, description="Window in days"),
    centro: str | None = Query(default=None),
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    stats = await delivery_service.attendance_stats(db, user, centro, periodo)
    return {"success": True, "data": stats}


@router.put("/{appointment_id}/confirmar")
async def confirm_delivery(
    appointment_id: uuid.UUID,
    body: DeliveryConfirmation,
    db: AsyncSession = Depends(get_session),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    appointment = await delivery_service.confirm_delivery(db, user, appointment_id, body)
    label = _OUTCOME_LABELS.get(appointment.status_entrega or "", appointment.status_entrega)
    return {
        "success": True,
        "message": f"Entrega confirmada como: {label}",
        "data": AppointmentOut.model_validate(appointment).model_dump(mode="json"),
    }
