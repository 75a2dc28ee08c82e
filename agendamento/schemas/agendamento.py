"""Pydantic models for appointment requests and responses.

Request bodies accept the camelCase names used by the web client
(`notaFiscal`, `centroDistribuicao`, ...) as well as the column names.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from agendamento.config import settings
from agendamento.scheduling.slots import is_known_center, is_known_slot


def _check_center(value: str) -> str:
    if not is_known_center(value):
        msg = f"Centro de distribuição inválido. Use: {', '.join(settings.scheduling.distribution_centers)}"
        raise ValueError(msg)
    return value


def _check_slot(value: str) -> str:
    if not is_known_slot(value):
        msg = f"Horário inválido. Use: {', '.join(settings.scheduling.time_slots)}"
        raise ValueError(msg)
    return value


class AppointmentCreate(BaseModel):
    """Public booking request."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    empresa: str = Field(min_length=1, max_length=255)
    email: EmailStr
    telefone: str = Field(min_length=1, max_length=30)
    nota_fiscal: str = Field(alias="notaFiscal", min_length=1, max_length=100)
    numero_pedido: str = Field(alias="numeroPedido", min_length=1, max_length=100)
    centro_distribuicao: str = Field(alias="centroDistribuicao")
    data_entrega: date = Field(alias="dataEntrega")
    horario_entrega: str = Field(alias="horarioEntrega")
    volumes_paletes: str | None = Field(default=None, alias="volumesPaletes", max_length=500)
    valor_nota_fiscal: Decimal = Field(alias="valorNotaFiscal", gt=0, max_digits=12, decimal_places=2)
    arquivo_nota_fiscal: str | None = Field(default=None, alias="arquivoNotaFiscal", max_length=500)

    @field_validator("centro_distribuicao")
    @classmethod
    def validate_center(cls, v: str) -> str:
        return _check_center(v)

    @field_validator("horario_entrega")
    @classmethod
    def validate_slot(cls, v: str) -> str:
        return _check_slot(v)


class StatusUpdate(BaseModel):
    """Lifecycle change. `status` stays a plain string so unknown values
    surface as InvalidStatus rather than a generic validation error."""

    status: str
    observacoes: str | None = None


class SlotSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    data_entrega: date = Field(alias="dataEntrega")
    horario_entrega: str = Field(alias="horarioEntrega")
    observacoes: str | None = None

    @field_validator("horario_entrega")
    @classmethod
    def validate_slot(cls, v: str) -> str:
        return _check_slot(v)


class AppointmentOut(BaseModel):
    """Full appointment row as returned to dashboards."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    empresa: str
    email: str
    telefone: str
    nota_fiscal: str
    numero_pedido: str
    centro_distribuicao: str
    data_entrega: date
    horario_entrega: str
    volumes_paletes: str | None = None
    valor_nota_fiscal: Decimal | None = None
    arquivo_nota_fiscal: str | None = None
    status: str
    data_solicitacao: datetime | None = None
    confirmado_por: str | None = None
    observacoes: str | None = None
    status_entrega: str | None = None
    data_confirmacao_entrega: datetime | None = None
    confirmado_entrega_por: str | None = None
    observacoes_entrega: str | None = None
    observacoes_detalhadas: str | None = None
    horario_chegada: str | None = None
    entregue_no_horario: bool | None = None
    transportador_informou: bool | None = None

