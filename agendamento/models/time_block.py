"""TimeBlock model — a window during which a center accepts no deliveries."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Index, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from agendamento.models.base import Base, TimestampMixin


class TimeBlock(TimestampMixin, Base):
    """Half-open interval [horario_inicio, horario_fim) blocked on one date."""

    __tablename__ = "bloqueios_horarios"
    __table_args__ = (
        Index("ix_bloqueios_cd_data", "centro_distribuicao", "data_bloqueio"),
    )

    centro_distribuicao: Mapped[str] = mapped_column(String(50), nullable=False)
    data_bloqueio: Mapped[date] = mapped_column(Date, nullable=False)
    horario_inicio: Mapped[str] = mapped_column(String(5), nullable=False)
    horario_fim: Mapped[str] = mapped_column(String(5), nullable=False)
    motivo: Mapped[str] = mapped_column(String(500), nullable=False)
    criado_por: Mapped[str | None] = mapped_column(String(100))

    # Appointment the block was opened for (e.g. an oversized delivery)
    agendamento_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("agendamentos.id", ondelete="SET NULL")
    )

    def __repr__(self) -> str:
        return (
            f"<TimeBlock cd={self.centro_distribuicao} {self.data_bloqueio} "
            f"{self.horario_inicio}-{self.horario_fim}>"
        )
