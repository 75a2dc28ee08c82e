"""Slot conflict detection.

Appointments occupy fixed, non-overlapping hour slots, so two bookings clash
exactly when (center, date, slot) are equal. Blocked windows are arbitrary
[start, end) intervals and use true interval overlap against both other
windows and the hour each active appointment occupies.

All functions here are read-only; callers write inside the same transaction
and rely on the slot unique index to settle concurrent writers.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.errors import BlockConflict, SlotConflict
from agendamento.models.appointment import Appointment
from agendamento.models.enums import ACTIVE_STATUSES
from agendamento.models.time_block import TimeBlock
from agendamento.scheduling.slots import intervals_overlap, slot_interval

logger = logging.getLogger(__name__)

_ACTIVE_VALUES = [s.value for s in ACTIVE_STATUSES]


async def find_slot_conflict(
    db: AsyncSession,
    centro: str,
    data_entrega: date,
    horario: str,
    exclude_id: uuid.UUID | None = None,
) -> Appointment | None:
    """Return the active appointment holding (centro, data, horario), if any."""
    stmt = select(Appointment).where(
        Appointment.centro_distribuicao == centro,
        Appointment.data_entrega == data_entrega,
        Appointment.horario_entrega == horario,
        Appointment.status.in_(_ACTIVE_VALUES),
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none()


async def find_block_overlap(
    db: AsyncSession,
    centro: str,
    data_bloqueio: date,
    inicio: str,
    fim: str,
    exclude_block_id: uuid.UUID | None = None,
) -> TimeBlock | None:
    """Return a blocked window overlapping [inicio, fim), if any.

    HH:MM strings compare like the times they encode, so the overlap test
    `existing.start < fim AND existing.end > inicio` runs in SQL.
    """
    stmt = select(TimeBlock).where(
        TimeBlock.centro_distribuicao == centro,
        TimeBlock.data_bloqueio == data_bloqueio,
        TimeBlock.horario_inicio < fim,
        TimeBlock.horario_fim > inicio,
    )
    if exclude_block_id is not None:
        stmt = stmt.where(TimeBlock.id != exclude_block_id)
    result = await db.execute(stmt.order_by(TimeBlock.horario_inicio).limit(1))
    return result.scalar_one_or_none()


async def find_appointments_in_window(
    db: AsyncSession,
    centro: str,
    data_entrega: date,
    inicio: str,
    fim: str,
    exclude_id: uuid.UUID | None = None,
) -> list[Appointment]:
    """Active appointments whose slot hour overlaps [inicio, fim)."""
    stmt = select(Appointment).where(
        Appointment.centro_distribuicao == centro,
        Appointment.data_entrega == data_entrega,
        Appointment.status.in_(_ACTIVE_VALUES),
    )
    if exclude_id is not None:
        stmt = stmt.where(Appointment.id != exclude_id)
    result = await db.execute(stmt.order_by(Appointment.horario_entrega))
    return [
        appt
        for appt in result.scalars().all()
        if intervals_overlap(*slot_interval(appt.horario_entrega), inicio, fim)
    ]


def conflict_from(appointment: Appointment, centro: str, data_entrega: date, horario: str) -> SlotConflict:
    return SlotConflict(
        empresa=appointment.empresa,
        nota_fiscal=appointment.nota_fiscal,
        centro_distribuicao=centro,
        data_entrega=data_entrega,
        horario_entrega=horario,
    )


def block_summary(block: TimeBlock) -> dict[str, str]:
    return {
        "id": str(block.id),
        "data_bloqueio": block.data_bloqueio.isoformat(),
        "horario_inicio": block.horario_inicio,
        "horario_fim": block.horario_fim,
        "motivo": block.motivo,
    }


async def ensure_slot_available(
    db: AsyncSession,
    centro: str,
    data_entrega: date,
    horario: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    """Raise if the slot is taken by an active appointment or a blocked window.

    Raises:
        SlotConflict: Another active appointment holds the slot.
        BlockConflict: The slot hour falls inside a blocked window.
    """
    existing = await find_slot_conflict(db, centro, data_entrega, horario, exclude_id)
    if existing is not None:
        logger.warning(
            "Slot conflict: %s %s %s held by %s (NF %s)",
            centro,
            data_entrega,
            horario,
            existing.id,
            existing.nota_fiscal,
        )
        raise conflict_from(existing, centro, data_entrega, horario)

    start, end = slot_interval(horario)
    block = await find_block_overlap(db, centro, data_entrega, start, end)
    if block is not None:
        logger.warning("Slot %s %s %s is inside block %s", centro, data_entrega, horario, block.id)
        raise BlockConflict(
            f"Horário bloqueado pelo CD ({block.horario_inicio}-{block.horario_fim}): {block.motivo}",
            block=block_summary(block),
        )


async def ensure_window_available(
    db: AsyncSession,
    centro: str,
    data_bloqueio: date,
    inicio: str,
    fim: str,
    linked_appointment_id: uuid.UUID | None = None,
) -> None:
    """Raise if a new blocked window would overlap another window or a booking.

    The appointment the block is opened for (if any) does not count.
    """
    block = await find_block_overlap(db, centro, data_bloqueio, inicio, fim)
    if block is not None:
        raise BlockConflict(block=block_summary(block))

    booked = await find_appointments_in_window(
        db, centro, data_bloqueio, inicio, fim, exclude_id=linked_appointment_id
    )
    if booked:
        first = booked[0]
        raise conflict_from(first, centro, data_bloqueio, first.horario_entrega)
