"""SQLAlchemy ORM models.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from agendamento.models.appointment import Appointment
from agendamento.models.audit import AuditLog
from agendamento.models.base import Base
from agendamento.models.enums import (
    ACTIVE_STATUSES,
    DELIVERABLE_STATUSES,
    AppointmentStatus,
    DeliveryStatus,
    UserRole,
)
from agendamento.models.time_block import TimeBlock
from agendamento.models.user import User

__all__ = [
    "Base",
    "Appointment",
    "AuditLog",
    "TimeBlock",
    "User",
    "AppointmentStatus",
    "DeliveryStatus",
    "UserRole",
    "ACTIVE_STATUSES",
    "DELIVERABLE_STATUSES",
]
