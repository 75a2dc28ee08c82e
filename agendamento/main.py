"""FastAPI application entry point, wires everything together.

Usage:
    python -m agendamento.main
"""

from __future__ import annotations

import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agendamento.admin.queries import check_system_health
from agendamento.api import admin, agendamentos, auth, entrega
from agendamento.config import settings
from agendamento.db.engine import db_lifespan
from agendamento.errors import register_exception_handlers
from agendamento.events import emit, start_event_system, stop_event_system, subscribe
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.security.audit import audit_on_event
from agendamento.security.retention import build_retention_scheduler

# ── Logging setup ────────────────────────────────────────────────────

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    stream=sys.stdout,
)
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = logging.getLogger(__name__)

# ── FastAPI lifespan ─────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup and shutdown lifecycle."""
    logger.info("Starting agendamento API (env=%s)", settings.environment)
    if not settings.security.jwt_secret:
        logger.warning("JWT_SECRET not set; login and authenticated routes will fail")

    # 1. Database (tables in dev, default accounts)
    async with db_lifespan():
        logger.info("Database initialized")

        # 2. Event system
        await start_event_system()
        logger.info("Event system started")

        # 3. Audit logging (global subscriber)
        subscribe(audit_on_event)
        logger.info("Audit logging subscriber registered")

        # 4. Retention job
        scheduler = build_retention_scheduler()
        scheduler.start()
        logger.info(
            "Retention job scheduled (cron=%s, tz=%s)",
            settings.retention_cron,
            settings.scheduling.timezone,
        )

        await emit(SystemEvent(
            event_type=EventType.SYSTEM_STARTUP,
            data={"environment": settings.environment},
            source_module="main",
        ))

        try:
            yield
        finally:
            # Shutdown in reverse order
            logger.info("Shutting down agendamento API...")

            scheduler.shutdown(wait=False)
            logger.info("Retention scheduler stopped")

            await emit(SystemEvent(event_type=EventType.SYSTEM_SHUTDOWN, source_module="main"))
            await stop_event_system()
            logger.info("Event system stopped")

    logger.info("Shutdown complete")


# ── FastAPI app ──────────────────────────────────────────────────────

app = FastAPI(
    title="Agendamento de Entregas API",
    description="Delivery-appointment scheduling for distribution centers",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.security.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(agendamentos.router)
app.include_router(entrega.router)
app.include_router(auth.router)
app.include_router(admin.router)


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    checks = await check_system_health()
    healthy = all(c["status"] == "ok" for c in checks.values())
    return {
        "status": "ok" if healthy else "degraded",
        "environment": settings.environment,
        "checks": checks,
    }


# ── Entry point ──────────────────────────────────────────────────────

if __name__ == "__main__":
    uvicorn.run(
        "agendamento.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.environment == "development",
        log_level=settings.log_level.lower(),
    )
