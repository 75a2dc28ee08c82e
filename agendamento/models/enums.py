"""Domain enums used across SQLAlchemy models and Pydantic schemas.

All enums use str mixin for JSON serialization; columns store `.value`.
"""

from __future__ import annotations

from enum import Enum


class UserRole(str, Enum):
    """Account roles. They drive both row scoping and mutation rights."""

    ADMIN = "admin"
    INSTITUTION = "institution"  # CD staff, bound to one center
    CONSULTIVO = "consultivo"  # read-only, cross-center


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    RESCHEDULE_SUGGESTED = "reschedule_suggested"


class DeliveryStatus(str, Enum):
    """Outcome recorded after the scheduled delivery date."""

    ARRIVED = "arrived"
    NO_SHOW = "no_show"
    ARRIVED_LATE = "arrived_late"


# Every lifecycle status holds the slot; there is no cancelled state.
ACTIVE_STATUSES: frozenset[AppointmentStatus] = frozenset(AppointmentStatus)

# Statuses after which a delivery outcome may be recorded.
DELIVERABLE_STATUSES: frozenset[AppointmentStatus] = frozenset({
    AppointmentStatus.CONFIRMED,
    AppointmentStatus.RESCHEDULE_SUGGESTED,
})

ALL_CENTERS = "all"
