"""Appointment model — one delivery request for a distribution center slot."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Boolean, Date, DateTime, Index, Numeric, String, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from agendamento.models.base import Base, TimestampMixin
from agendamento.models.enums import ACTIVE_STATUSES, AppointmentStatus

SLOT_INDEX_NAME = "uq_agendamentos_slot_ativo"
ACTIVE_SLOT_PREDICATE = "status IN ({})".format(
    ", ".join(f"'{s.value}'" for s in sorted(ACTIVE_STATUSES, key=lambda s: s.value))
)


class Appointment(TimestampMixin, Base):
    """A delivery slot requested by a supplier at a distribution center."""

    __tablename__ = "agendamentos"
    __table_args__ = (
        # Closes the check-then-insert race: two active bookings for the same
        # slot cannot both be committed.
        Index(
            SLOT_INDEX_NAME,
            "centro_distribuicao",
            "data_entrega",
            "horario_entrega",
            unique=True,
            postgresql_where=text(ACTIVE_SLOT_PREDICATE),
        ),
        Index("ix_agendamentos_cd_data", "centro_distribuicao", "data_entrega"),
    )

    # Requester
    empresa: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    telefone: Mapped[str] = mapped_column(String(30), nullable=False)
    nota_fiscal: Mapped[str] = mapped_column(String(100), nullable=False)
    numero_pedido: Mapped[str] = mapped_column(String(100), nullable=False)
    volumes_paletes: Mapped[str | None] = mapped_column(String(500))
    valor_nota_fiscal: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    arquivo_nota_fiscal: Mapped[str | None] = mapped_column(String(500), comment="Uploaded invoice reference")

    # Scheduling
    centro_distribuicao: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    data_entrega: Mapped[date] = mapped_column(Date, nullable=False)
    horario_entrega: Mapped[str] = mapped_column(String(5), nullable=False, comment="Slot start, HH:MM")

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(30), default=AppointmentStatus.PENDING_CONFIRMATION.value, nullable=False, index=True
    )
    data_solicitacao: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    confirmado_por: Mapped[str | None] = mapped_column(String(100))
    observacoes: Mapped[str | None] = mapped_column(Text)

    # Delivery confirmation
    status_entrega: Mapped[str | None] = mapped_column(String(30))
    data_confirmacao_entrega: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmado_entrega_por: Mapped[str | None] = mapped_column(String(100))
    observacoes_entrega: Mapped[str | None] = mapped_column(Text)
    observacoes_detalhadas: Mapped[str | None] = mapped_column(Text)
    horario_chegada: Mapped[str | None] = mapped_column(String(5))
    entregue_no_horario: Mapped[bool | None] = mapped_column(Boolean)
    transportador_informou: Mapped[bool | None] = mapped_column(Boolean)

    def __repr__(self) -> str:
        return (
            f"<Appointment id={self.id} cd={self.centro_distribuicao} "
            f"at={self.data_entrega} {self.horario_entrega} status={self.status}>"
        )
