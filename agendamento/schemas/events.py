"""SystemEvent schema — the event type that flows through the whole service.

Every mutation emits a SystemEvent. The audit subscriber consumes these
events asynchronously.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """All event types emitted by the system."""

    # Appointments
    APPOINTMENT_CREATED = "appointment.created"
    APPOINTMENT_STATUS_CHANGED = "appointment.status_changed"
    APPOINTMENT_RESCHEDULE_SUGGESTED = "appointment.reschedule_suggested"
    SLOT_CONFLICT = "appointment.slot_conflict"

    # Delivery
    DELIVERY_CONFIRMED = "delivery.confirmed"

    # Blocked windows
    SLOT_BLOCKED = "block.created"
    SLOT_UNBLOCKED = "block.removed"

    # Accounts
    AUTH_LOGIN = "auth.login"
    AUTH_LOGIN_FAILED = "auth.login_failed"
    PASSWORD_CHANGED = "auth.password_changed"
    PASSWORD_RESET = "auth.password_reset"

    # System
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_SHUTDOWN = "system.shutdown"
    SYSTEM_MAINTENANCE = "system.maintenance"


class SystemEvent(BaseModel):
    """Core event emitted by services. Immutable once created."""

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    event_type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    # Context (logins and maintenance have no appointment)
    appointment_id: uuid.UUID | None = None
    actor_id: str | None = None
    actor_role: str | None = None

    # Flexible payload
    data: dict[str, Any] = Field(default_factory=dict)

    source_module: str | None = Field(default=None, description="Module that emitted this event")

    model_config = {"frozen": True}
