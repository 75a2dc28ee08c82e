"""Pydantic models for blocked delivery windows."""

from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator

from agendamento.scheduling.slots import HHMM_PATTERN, to_minutes


class BlockCreate(BaseModel):
    """New blocked window. Admins must name the center; institution users
    always block their own."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    data: date
    horario_inicio: str = Field(alias="horarioInicio", pattern=HHMM_PATTERN)
    horario_fim: str = Field(alias="horarioFim", pattern=HHMM_PATTERN)
    motivo: str = Field(min_length=1, max_length=500)
    agendamento_id: uuid.UUID | None = Field(default=None, alias="agendamentoId")
    centro_distribuicao: str | None = Field(default=None, alias="centroDistribuicao")

    @model_validator(mode="after")
    def check_order(self) -> BlockCreate:
        if to_minutes(self.horario_inicio) >= to_minutes(self.horario_fim):
            msg = "horarioInicio deve ser anterior a horarioFim"
            raise ValueError(msg)
        return self


class BlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    centro_distribuicao: str
    data_bloqueio: date
    horario_inicio: str
    horario_fim: str
    motivo: str
    criado_por: str | None = None
    agendamento_id: uuid.UUID | None = None
    created_at: datetime | None = None

    # Filled from the linked appointment, when there is one
    empresa: str | None = None
    nota_fiscal: str | None = None
