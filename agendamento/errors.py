"""Domain exceptions and their JSON rendering.

Services raise these; routers never catch them. The handlers registered by
`register_exception_handlers` turn each one into
``{"success": false, "error": <category>, "message": <text>, ...}``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class AgendamentoError(Exception):
    """Base class for all errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    category: str = "internal_error"
    default_message: str = "Erro interno do servidor"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def payload(self) -> dict[str, Any]:
        return {"success": False, "error": self.category, "message": self.message}

    def headers(self) -> dict[str, str] | None:
        return None


class ValidationError(AgendamentoError):
    status_code = status.HTTP_400_BAD_REQUEST
    category = "validation_error"
    default_message = "Dados inválidos"


class InvalidStatus(ValidationError):
    category = "invalid_status"
    default_message = "Status inválido"


class InvalidTransition(ValidationError):
    category = "invalid_transition"
    default_message = "Transição de status não permitida"


class AuthenticationError(AgendamentoError):
    status_code = status.HTTP_401_UNAUTHORIZED
    category = "unauthorized"
    default_message = "Token inválido ou ausente"

    def headers(self) -> dict[str, str] | None:
        return {"WWW-Authenticate": "Bearer"}


class Forbidden(AgendamentoError):
    status_code = status.HTTP_403_FORBIDDEN
    category = "forbidden"
    default_message = "Acesso negado"


class NotFound(AgendamentoError):
    status_code = status.HTTP_404_NOT_FOUND
    category = "not_found"
    default_message = "Registro não encontrado"


class SlotConflict(AgendamentoError):
    """An active appointment already holds the requested slot."""

    status_code = status.HTTP_409_CONFLICT
    category = "slot_conflict"

    def __init__(
        self,
        *,
        empresa: str,
        nota_fiscal: str,
        centro_distribuicao: str,
        data_entrega: date,
        horario_entrega: str,
    ) -> None:
        self.empresa = empresa
        self.nota_fiscal = nota_fiscal
        self.centro_distribuicao = centro_distribuicao
        self.data_entrega = data_entrega
        self.horario_entrega = horario_entrega
        super().__init__(
            "Este horário já está ocupado por outro agendamento. "
            f"Empresa: {empresa} (NF: {nota_fiscal}). Por favor, escolha outro horário."
        )

    def payload(self) -> dict[str, Any]:
        body = super().payload()
        body["conflito"] = {
            "empresa": self.empresa,
            "nota_fiscal": self.nota_fiscal,
            "centro_distribuicao": self.centro_distribuicao,
            "data_entrega": self.data_entrega.isoformat(),
            "horario_entrega": self.horario_entrega,
        }
        return body


class BlockConflict(AgendamentoError):
    """The requested interval overlaps a blocked window."""

    status_code = status.HTTP_409_CONFLICT
    category = "block_conflict"
    default_message = "Já existe um bloqueio cadastrado que conflita com este período"

    def __init__(self, message: str | None = None, *, block: dict[str, Any] | None = None) -> None:
        self.block = block
        super().__init__(message)

    def payload(self) -> dict[str, Any]:
        body = super().payload()
        if self.block is not None:
            body["bloqueio"] = self.block
        return body


class RateLimited(AgendamentoError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    category = "rate_limited"
    default_message = "Muitas tentativas. Tente novamente mais tarde."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after)}


class InternalError(AgendamentoError):
    pass


class ServiceUnavailable(AgendamentoError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    category = "service_unavailable"
    default_message = "Serviço indisponível"


# ── FastAPI wiring ───────────────────────────────────────────────────


async def _domain_error_handler(request: Request, exc: AgendamentoError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.category
        )
    return JSONResponse(status_code=exc.status_code, content=exc.payload(), headers=exc.headers())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Body/query validation failures are client errors (400), not 422."""
    fields = [
        {
            "campo": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "erro": err.get("msg", ""),
        }
        for err in exc.errors()
    ]
    logger.warning("Validation error for %s: %s", request.url.path, fields)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": ValidationError.category,
            "message": "Todos os campos obrigatórios devem ser preenchidos corretamente",
            "campos": fields,
        },
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=InternalError().payload(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain, validation and catch-all handlers to an app."""
    app.add_exception_handler(AgendamentoError, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _request_validation_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)
