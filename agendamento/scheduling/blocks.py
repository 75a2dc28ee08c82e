"""Blocked delivery windows.

CD staff close a [start, end) window on a date, usually to make room for an
oversized delivery that needs more than one slot. A window may not overlap
another window of the same center and date, nor any active booking other
than the appointment it was opened for.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.errors import NotFound, ValidationError
from agendamento.events import emit
from agendamento.models.appointment import Appointment
from agendamento.models.enums import UserRole
from agendamento.models.time_block import TimeBlock
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.bloqueio import BlockCreate, BlockOut
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.scheduling.access import AccessScope, scope_for
from agendamento.scheduling.conflicts import ensure_window_available
from agendamento.scheduling.slots import is_known_center
from agendamento.scheduling.states import ensure_can_transition

logger = logging.getLogger(__name__)


class BlockService:
    """Creates, lists and removes blocked windows."""

    async def create_block(self, db: AsyncSession, user: CurrentUser, request: BlockCreate) -> TimeBlock:
        """Close a window for deliveries.

        Raises:
            Forbidden: consultivo caller.
            ValidationError: Missing or unknown center.
            NotFound: Linked appointment absent or outside the caller's center.
            BlockConflict: Overlaps another blocked window.
            SlotConflict: Overlaps an active booking.
        """
        ensure_can_transition(user.role)
        centro = self._target_center(user, request.centro_distribuicao)
        scope = scope_for(user)

        if request.agendamento_id is not None:
            linked = await db.execute(
                scope.apply(
                    select(Appointment.id).where(
                        Appointment.id == request.agendamento_id,
                        Appointment.centro_distribuicao == centro,
                    ),
                    Appointment.centro_distribuicao,
                )
            )
            if linked.scalar_one_or_none() is None:
                raise NotFound("Agendamento vinculado não encontrado")

        await ensure_window_available(
            db,
            centro,
            request.data,
            request.horario_inicio,
            request.horario_fim,
            linked_appointment_id=request.agendamento_id,
        )

        block = TimeBlock(
            id=uuid.uuid4(),
            centro_distribuicao=centro,
            data_bloqueio=request.data,
            horario_inicio=request.horario_inicio,
            horario_fim=request.horario_fim,
            motivo=request.motivo,
            criado_por=user.username,
            agendamento_id=request.agendamento_id,
        )
        db.add(block)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.SLOT_BLOCKED,
            appointment_id=request.agendamento_id,
            actor_id=user.username,
            actor_role=user.role.value,
            data={
                "block_id": str(block.id),
                "centro_distribuicao": centro,
                "data_bloqueio": request.data.isoformat(),
                "horario_inicio": request.horario_inicio,
                "horario_fim": request.horario_fim,
                "motivo": request.motivo,
            },
            source_module="scheduling.blocks",
        ))

        logger.info(
            "Blocked %s %s %s-%s by %s (%s)",
            centro,
            request.data,
            request.horario_inicio,
            request.horario_fim,
            user.username,
            request.motivo,
        )
        return block

    async def list_blocks(
        self,
        db: AsyncSession,
        user: CurrentUser,
        data_bloqueio: date | None = None,
        centro: str | None = None,
    ) -> list[dict[str, Any]]:
        """Blocks visible to the caller, newest date first, with the linked
        appointment's company and invoice when there is one."""
        stmt = (
            select(TimeBlock, Appointment.empresa, Appointment.nota_fiscal)
            .outerjoin(Appointment, TimeBlock.agendamento_id == Appointment.id)
        )
        if data_bloqueio is not None:
            stmt = stmt.where(TimeBlock.data_bloqueio == data_bloqueio)
        stmt = scope_for(user).narrow(centro).apply(stmt, TimeBlock.centro_distribuicao)

        result = await db.execute(
            stmt.order_by(TimeBlock.data_bloqueio.desc(), TimeBlock.horario_inicio)
        )
        return [
            BlockOut.model_validate(block).model_copy(
                update={"empresa": empresa, "nota_fiscal": nota_fiscal}
            ).model_dump(mode="json")
            for block, empresa, nota_fiscal in result.all()
        ]

    async def delete_block(self, db: AsyncSession, user: CurrentUser, block_id: uuid.UUID) -> None:
        """Reopen a window. NotFound if absent or outside the caller's center."""
        ensure_can_transition(user.role)
        block = await self._load_scoped(db, scope_for(user), block_id)

        await db.delete(block)
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.SLOT_UNBLOCKED,
            appointment_id=block.agendamento_id,
            actor_id=user.username,
            actor_role=user.role.value,
            data={
                "block_id": str(block_id),
                "centro_distribuicao": block.centro_distribuicao,
                "data_bloqueio": block.data_bloqueio.isoformat(),
            },
            source_module="scheduling.blocks",
        ))

        logger.info("Block %s removed by %s", block_id, user.username)

    # ── Internals ────────────────────────────────────────────────────

    @staticmethod
    def _target_center(user: CurrentUser, requested: str | None) -> str:
        if user.role != UserRole.ADMIN:
            return user.centro_distribuicao
        if not requested:
            raise ValidationError("Informe o centro de distribuição do bloqueio")
        if not is_known_center(requested):
            raise ValidationError(f"Centro de distribuição inválido: {requested}")
        return requested

    @staticmethod
    async def _load_scoped(db: AsyncSession, scope: AccessScope, block_id: uuid.UUID) -> TimeBlock:
        stmt = scope.apply(select(TimeBlock).where(TimeBlock.id == block_id), TimeBlock.centro_distribuicao)
        result = await db.execute(stmt)
        block = result.scalar_one_or_none()
        if block is None:
            raise NotFound("Bloqueio não encontrado")
        return block


# Module-level singleton
block_service = BlockService()
