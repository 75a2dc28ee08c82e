"""Appointment service — booking, listing, confirming and rescheduling.

Each operation is scoped by the caller's AccessScope and runs inside the
request transaction. Writes that claim a slot go through a savepoint so a
unique-index violation from a concurrent booking is reported as a
SlotConflict naming whoever won the race.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.errors import BlockConflict, NotFound, SlotConflict
from agendamento.events import emit
from agendamento.models.appointment import Appointment
from agendamento.models.enums import ACTIVE_STATUSES, AppointmentStatus
from agendamento.models.time_block import TimeBlock
from agendamento.schemas.agendamento import AppointmentCreate
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.scheduling.access import AccessScope, scope_for
from agendamento.scheduling.conflicts import (
    conflict_from,
    ensure_slot_available,
    find_slot_conflict,
)
from agendamento.scheduling.slots import intervals_overlap, slot_interval
from agendamento.scheduling.states import check_transition, ensure_can_transition, parse_status

logger = logging.getLogger(__name__)


class AppointmentService:
    """Manages delivery appointments."""

    async def create_appointment(self, db: AsyncSession, request: AppointmentCreate) -> Appointment:
        """Book a slot for a supplier (public, unauthenticated).

        Raises:
            SlotConflict: The slot is held by another active appointment.
            BlockConflict: The slot is inside a blocked window.
        """
        try:
            await ensure_slot_available(
                db, request.centro_distribuicao, request.data_entrega, request.horario_entrega
            )
        except (SlotConflict, BlockConflict) as exc:
            await self._emit_conflict(exc, request.centro_distribuicao, actor="public")
            raise

        appointment = Appointment(
            id=uuid.uuid4(),
            empresa=request.empresa,
            email=str(request.email),
            telefone=request.telefone,
            nota_fiscal=request.nota_fiscal,
            numero_pedido=request.numero_pedido,
            centro_distribuicao=request.centro_distribuicao,
            data_entrega=request.data_entrega,
            horario_entrega=request.horario_entrega,
            volumes_paletes=request.volumes_paletes,
            valor_nota_fiscal=request.valor_nota_fiscal,
            arquivo_nota_fiscal=request.arquivo_nota_fiscal,
            status=AppointmentStatus.PENDING_CONFIRMATION.value,
        )
        await self._claim_slot(db, appointment)

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_CREATED,
            appointment_id=appointment.id,
            actor_id="public",
            data={
                "empresa": appointment.empresa,
                "nota_fiscal": appointment.nota_fiscal,
                "centro_distribuicao": appointment.centro_distribuicao,
                "data_entrega": appointment.data_entrega.isoformat(),
                "horario_entrega": appointment.horario_entrega,
            },
            source_module="scheduling.service",
        ))

        logger.info(
            "Appointment created: id=%s cd=%s at=%s %s empresa=%s",
            appointment.id,
            appointment.centro_distribuicao,
            appointment.data_entrega,
            appointment.horario_entrega,
            appointment.empresa,
        )
        return appointment

    async def list_appointments(self, db: AsyncSession, user: CurrentUser) -> list[Appointment]:
        """Every appointment the caller may see, newest request first."""
        stmt = scope_for(user).apply(select(Appointment), Appointment.centro_distribuicao)
        result = await db.execute(stmt.order_by(Appointment.data_solicitacao.desc()))
        return list(result.scalars().all())

    async def get_appointment(
        self,
        db: AsyncSession,
        user: CurrentUser,
        appointment_id: uuid.UUID,
    ) -> Appointment:
        """Fetch one appointment; NotFound if absent or outside the caller's scope."""
        return await self._load_scoped(db, scope_for(user), appointment_id)

    async def update_status(
        self,
        db: AsyncSession,
        user: CurrentUser,
        appointment_id: uuid.UUID,
        new_status: str,
        observacoes: str | None = None,
    ) -> Appointment:
        """Move an appointment along its lifecycle (e.g. confirm it).

        Checks run in order: role, status value, scope, transition table.
        """
        ensure_can_transition(user.role)
        target = parse_status(new_status)
        appointment = await self._load_scoped(db, scope_for(user), appointment_id)
        current = AppointmentStatus(appointment.status)

        check_transition(current, target, user.role)

        appointment.status = target.value
        appointment.confirmado_por = user.username
        appointment.observacoes = observacoes
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_STATUS_CHANGED,
            appointment_id=appointment.id,
            actor_id=user.username,
            actor_role=user.role.value,
            data={"from_status": current.value, "to_status": target.value},
            source_module="scheduling.service",
        ))

        logger.info(
            "Appointment %s: %s -> %s by %s", appointment.id, current.value, target.value, user.username
        )
        return appointment

    async def suggest_new_slot(
        self,
        db: AsyncSession,
        user: CurrentUser,
        appointment_id: uuid.UUID,
        data_entrega: date,
        horario_entrega: str,
        observacoes: str | None = None,
    ) -> Appointment:
        """Counter-propose a different date/slot (status -> reschedule_suggested).

        The appointment itself is excluded from the conflict scan, so
        proposing its current slot is allowed.
        """
        ensure_can_transition(user.role)
        appointment = await self._load_scoped(db, scope_for(user), appointment_id)
        current = AppointmentStatus(appointment.status)
        target = AppointmentStatus.RESCHEDULE_SUGGESTED

        check_transition(current, target, user.role, with_new_slot=True)

        centro = appointment.centro_distribuicao
        try:
            await ensure_slot_available(db, centro, data_entrega, horario_entrega, exclude_id=appointment.id)
        except (SlotConflict, BlockConflict) as exc:
            await self._emit_conflict(exc, centro, actor=user.username)
            raise

        previous = (appointment.data_entrega, appointment.horario_entrega)
        await self._claim_slot(
            db,
            appointment,
            changes={
                "data_entrega": data_entrega,
                "horario_entrega": horario_entrega,
                "status": target.value,
                "confirmado_por": user.username,
                "observacoes": observacoes,
            },
        )

        await emit(SystemEvent(
            event_type=EventType.APPOINTMENT_RESCHEDULE_SUGGESTED,
            appointment_id=appointment.id,
            actor_id=user.username,
            actor_role=user.role.value,
            data={
                "from_status": current.value,
                "previous_date": previous[0].isoformat(),
                "previous_slot": previous[1],
                "data_entrega": data_entrega.isoformat(),
                "horario_entrega": horario_entrega,
            },
            source_module="scheduling.service",
        ))

        logger.info(
            "Appointment %s rescheduled %s %s -> %s %s by %s",
            appointment.id,
            previous[0],
            previous[1],
            data_entrega,
            horario_entrega,
            user.username,
        )
        return appointment

    async def available_slots(self, db: AsyncSession, centro: str, data_entrega: date) -> list[str]:
        """Configured slots not held by an active appointment nor inside a block."""
        booked = await db.execute(
            select(Appointment.horario_entrega).where(
                Appointment.centro_distribuicao == centro,
                Appointment.data_entrega == data_entrega,
                Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        )
        taken = set(booked.scalars().all())

        blocks = await db.execute(
            select(TimeBlock.horario_inicio, TimeBlock.horario_fim).where(
                TimeBlock.centro_distribuicao == centro,
                TimeBlock.data_bloqueio == data_entrega,
            )
        )
        windows = blocks.all()

        return [
            slot
            for slot in settings.scheduling.time_slots
            if slot not in taken
            and not any(intervals_overlap(*slot_interval(slot), start, end) for start, end in windows)
        ]

    # ── Internals ────────────────────────────────────────────────────

    async def _load_scoped(
        self,
        db: AsyncSession,
        scope: AccessScope,
        appointment_id: uuid.UUID,
    ) -> Appointment:
        stmt = scope.apply(
            select(Appointment).where(Appointment.id == appointment_id),
            Appointment.centro_distribuicao,
        )
        result = await db.execute(stmt)
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFound("Agendamento não encontrado")
        return appointment

    async def _claim_slot(
        self,
        db: AsyncSession,
        appointment: Appointment,
        changes: dict[str, Any] | None = None,
    ) -> None:
        """Write the slot inside a savepoint; a lost race becomes a SlotConflict.

        With `changes` the existing row is updated, otherwise it is inserted.
        """
        target = changes or {}
        centro = appointment.centro_distribuicao
        data_entrega = target.get("data_entrega", appointment.data_entrega)
        horario = target.get("horario_entrega", appointment.horario_entrega)
        try:
            async with db.begin_nested():
                if changes is None:
                    db.add(appointment)
                else:
                    for field, value in changes.items():
                        setattr(appointment, field, value)
                await db.flush()
        except IntegrityError:
            winner = await find_slot_conflict(db, centro, data_entrega, horario, exclude_id=appointment.id)
            if winner is None:
                raise
            logger.warning(
                "Concurrent booking lost for %s %s %s (held by %s)", centro, data_entrega, horario, winner.id
            )
            raise conflict_from(winner, centro, data_entrega, horario) from None

    @staticmethod
    async def _emit_conflict(exc: SlotConflict | BlockConflict, centro: str, actor: str) -> None:
        await emit(SystemEvent(
            event_type=EventType.SLOT_CONFLICT,
            actor_id=actor,
            data={"centro_distribuicao": centro, **exc.payload()},
            source_module="scheduling.service",
        ))


# Module-level singleton
appointment_service = AppointmentService()
