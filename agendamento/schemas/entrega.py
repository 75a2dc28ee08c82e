"""Pydantic models for delivery confirmation and attendance statistics."""

from __future__ import annotations

from pydantic import BaseModel, Field

from agendamento.scheduling.slots import HHMM_PATTERN


class DeliveryConfirmation(BaseModel):
    """Outcome of a scheduled delivery.

    `status_entrega` is validated by the delivery service so an unknown
    value is reported as invalid_status.
    """

    status_entrega: str
    horario_chegada: str | None = Field(default=None, pattern=HHMM_PATTERN)
    entregue_no_horario: bool | None = None
    transportador_informou: bool | None = None
    observacoes_entrega: str | None = None
    observacoes_detalhadas: str | None = None
