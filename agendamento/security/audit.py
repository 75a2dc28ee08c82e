"""Persists SystemEvents to audit_log.

Subscribed globally at startup, so every booking, transition, delivery
outcome, block change and login leaves a row. Runs on the event worker,
never in the request's transaction.
"""

from __future__ import annotations

import logging

from agendamento.db.engine import async_session_factory
from agendamento.models.audit import AuditLog
from agendamento.schemas.events import SystemEvent

logger = logging.getLogger(__name__)


def to_audit_row(event: SystemEvent) -> AuditLog:
    return AuditLog(
        event_type=event.event_type.value,
        appointment_id=event.appointment_id,
        actor_id=event.actor_id,
        actor_role=event.actor_role,
        data={**event.data, "source": event.source_module} if event.source_module else event.data,
    )


async def audit_on_event(event: SystemEvent) -> None:
    """Write one audit row in its own session. Errors are logged, not raised."""
    try:
        async with async_session_factory() as db:
            db.add(to_audit_row(event))
            await db.commit()
    except Exception:
        logger.exception(
            "Could not write audit row for %s (actor=%s)", event.event_type.value, event.actor_id
        )
