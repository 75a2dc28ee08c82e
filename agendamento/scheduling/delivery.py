"""Delivery confirmation — the outcome track that runs after the lifecycle.

Once an appointment is confirmed (or a new slot was suggested) CD staff
record whether the supplier showed up. Outcomes can be overwritten; the
last write wins. Attendance statistics are computed per center over a
trailing window of delivery dates.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from datetime import UTC, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from agendamento.config import settings
from agendamento.errors import InvalidStatus, InvalidTransition, NotFound
from agendamento.events import emit
from agendamento.models.appointment import Appointment
from agendamento.models.enums import (
    ALL_CENTERS,
    DELIVERABLE_STATUSES,
    AppointmentStatus,
    DeliveryStatus,
)
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.entrega import DeliveryConfirmation
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.scheduling.access import scope_for
from agendamento.scheduling.slots import today_local
from agendamento.scheduling.states import ensure_can_transition

logger = logging.getLogger(__name__)

_DELIVERABLE_VALUES = [s.value for s in DELIVERABLE_STATUSES]


def attendance_rate(arrived: int, arrived_late: int, outcomes: int) -> int:
    """Share of recorded outcomes where the supplier showed up, as a whole percent.

    Halves round up (2/3 -> 67, 1/8 -> 13); no outcomes gives 0.
    """
    if outcomes <= 0:
        return 0
    pct = Decimal(arrived + arrived_late) * 100 / Decimal(outcomes)
    return int(pct.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def parse_delivery_status(value: str) -> DeliveryStatus:
    try:
        return DeliveryStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in DeliveryStatus)
        raise InvalidStatus(f"Status de entrega inválido: {value!r}. Use: {valid}") from None


@dataclass
class DeliveryStats:
    total_entregas: int = 0
    compareceram: int = 0
    nao_compareceram: int = 0
    compareceram_atraso: int = 0
    pendentes_confirmacao: int = 0

    @property
    def taxa_comparecimento(self) -> int:
        return attendance_rate(self.compareceram, self.compareceram_atraso, self.total_entregas)

    def add(self, outcome: str | None, count: int) -> None:
        if outcome is None:
            self.pendentes_confirmacao += count
            return
        self.total_entregas += count
        if outcome == DeliveryStatus.ARRIVED.value:
            self.compareceram += count
        elif outcome == DeliveryStatus.NO_SHOW.value:
            self.nao_compareceram += count
        elif outcome == DeliveryStatus.ARRIVED_LATE.value:
            self.compareceram_atraso += count

    def as_dict(self) -> dict[str, int]:
        return {**asdict(self), "taxa_comparecimento": self.taxa_comparecimento}


def summarize_outcomes(
    rows: Iterable[tuple[str, str | None, int]],
) -> tuple[DeliveryStats, dict[str, DeliveryStats]]:
    """Fold (centro, status_entrega, count) rows into overall and per-center stats.

    A NULL outcome row counts as pending confirmation.
    """
    overall = DeliveryStats()
    by_center: dict[str, DeliveryStats] = {}
    for centro, outcome, count in rows:
        overall.add(outcome, count)
        by_center.setdefault(centro, DeliveryStats()).add(outcome, count)
    return overall, by_center


class DeliveryService:
    """Records delivery outcomes and reports attendance."""

    async def confirm_delivery(
        self,
        db: AsyncSession,
        user: CurrentUser,
        appointment_id: uuid.UUID,
        confirmation: DeliveryConfirmation,
    ) -> Appointment:
        """Record (or overwrite) the delivery outcome of an appointment.

        Raises:
            Forbidden: consultivo caller.
            InvalidStatus: Unknown outcome value.
            NotFound: Absent or outside the caller's center.
            InvalidTransition: Appointment not yet confirmed.
        """
        ensure_can_transition(user.role)
        outcome = parse_delivery_status(confirmation.status_entrega)

        stmt = scope_for(user).apply(
            select(Appointment).where(Appointment.id == appointment_id),
            Appointment.centro_distribuicao,
        )
        result = await db.execute(stmt)
        appointment = result.scalar_one_or_none()
        if appointment is None:
            raise NotFound("Agendamento não encontrado ou não pertence ao seu CD")

        if AppointmentStatus(appointment.status) not in DELIVERABLE_STATUSES:
            raise InvalidTransition(
                "A entrega só pode ser confirmada após o agendamento ser confirmado"
            )

        previous = appointment.status_entrega
        appointment.status_entrega = outcome.value
        appointment.data_confirmacao_entrega = datetime.now(UTC)
        appointment.confirmado_entrega_por = user.username
        appointment.horario_chegada = confirmation.horario_chegada
        appointment.entregue_no_horario = confirmation.entregue_no_horario
        appointment.transportador_informou = confirmation.transportador_informou
        appointment.observacoes_entrega = confirmation.observacoes_entrega
        appointment.observacoes_detalhadas = confirmation.observacoes_detalhadas
        await db.flush()

        await emit(SystemEvent(
            event_type=EventType.DELIVERY_CONFIRMED,
            appointment_id=appointment.id,
            actor_id=user.username,
            actor_role=user.role.value,
            data={
                "status_entrega": outcome.value,
                "previous": previous,
                "horario_chegada": confirmation.horario_chegada,
            },
            source_module="scheduling.delivery",
        ))

        logger.info(
            "Delivery %s recorded as %s by %s (was %s)",
            appointment.id,
            outcome.value,
            user.username,
            previous,
        )
        return appointment

    async def deliveries_today(
        self,
        db: AsyncSession,
        user: CurrentUser,
        centro: str | None = None,
    ) -> list[Appointment]:
        """Confirmed deliveries scheduled for today, in slot order."""
        stmt = select(Appointment).where(
            Appointment.data_entrega == today_local(),
            Appointment.status.in_(_DELIVERABLE_VALUES),
        )
        stmt = scope_for(user).narrow(centro).apply(stmt, Appointment.centro_distribuicao)
        result = await db.execute(
            stmt.order_by(Appointment.centro_distribuicao, Appointment.horario_entrega)
        )
        return list(result.scalars().all())

    async def pending_deliveries(
        self,
        db: AsyncSession,
        user: CurrentUser,
        centro: str | None = None,
    ) -> list[Appointment]:
        """Confirmed deliveries from yesterday on with no outcome recorded yet."""
        since = today_local() - timedelta(days=1)
        stmt = select(Appointment).where(
            Appointment.data_entrega >= since,
            Appointment.status.in_(_DELIVERABLE_VALUES),
            Appointment.status_entrega.is_(None),
        )
        stmt = scope_for(user).narrow(centro).apply(stmt, Appointment.centro_distribuicao)
        result = await db.execute(
            stmt.order_by(Appointment.data_entrega, Appointment.horario_entrega)
        )
        return list(result.scalars().all())

    async def attendance_stats(
        self,
        db: AsyncSession,
        user: CurrentUser,
        centro: str | None = None,
        period_days: int | None = None,
    ) -> dict[str, Any]:
        """Attendance over the trailing window of delivery dates.

        Returns the overall figures plus a per-center breakdown.
        """
        period = period_days or settings.scheduling.stats_period_days
        today = today_local()
        since = today - timedelta(days=period)

        stmt = (
            select(
                Appointment.centro_distribuicao,
                Appointment.status_entrega,
                func.count(Appointment.id),
            )
            .where(
                Appointment.status.in_(_DELIVERABLE_VALUES),
                Appointment.data_entrega >= since,
                or_(
                    Appointment.status_entrega.isnot(None),
                    Appointment.data_entrega < today,
                ),
            )
            .group_by(Appointment.centro_distribuicao, Appointment.status_entrega)
        )
        scope = scope_for(user).narrow(centro)
        result = await db.execute(scope.apply(stmt, Appointment.centro_distribuicao))
        overall, by_center = summarize_outcomes(result.all())

        return {
            **overall.as_dict(),
            "periodo_dias": period,
            "desde": since.isoformat(),
            "cd": scope.centro_distribuicao or ALL_CENTERS,
            "por_cd": {cd: stats.as_dict() for cd, stats in sorted(by_center.items())},
        }


# Module-level singleton
delivery_service = DeliveryService()
