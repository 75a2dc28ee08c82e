"""Audit trail of scheduling activity: bookings, status changes, deliveries,
blocked windows, logins and maintenance runs."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from agendamento.models.base import Base, TimestampMixin


class AuditLog(TimestampMixin, Base):
    """One row per SystemEvent. Rows older than AUDIT_RETENTION_MONTHS are purged."""

    __tablename__ = "audit_log"

    event_type: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    # Set for appointment, delivery and linked-block events
    appointment_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), index=True)

    # Dashboard username, the booking company ("public") or "system"
    actor_id: Mapped[str | None] = mapped_column(String(100))
    actor_role: Mapped[str | None] = mapped_column(String(50))

    # Event payload: center, date, slot, previous status, counts...
    data: Mapped[dict[str, Any] | None] = mapped_column(JSONB)

    def __repr__(self) -> str:
        return f"<AuditLog {self.event_type} by={self.actor_id} appointment={self.appointment_id}>"
