"""Appointment lifecycle state machine.

Only the transition table decides which status changes are valid; the
role gate sits in front of it. Moving to reschedule_suggested needs a new
slot, so it only happens through the suggest-slot operation.
"""

from __future__ import annotations

import logging

from agendamento.errors import Forbidden, InvalidStatus, InvalidTransition
from agendamento.models.enums import AppointmentStatus, UserRole

logger = logging.getLogger(__name__)

# {current_status: {allowed target statuses}}
TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING_CONFIRMATION: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.RESCHEDULE_SUGGESTED,
    }),
    AppointmentStatus.RESCHEDULE_SUGGESTED: frozenset({
        AppointmentStatus.CONFIRMED,
    }),
    AppointmentStatus.CONFIRMED: frozenset(),
}

# Targets that carry a new date/slot with them
REQUIRES_NEW_SLOT: frozenset[AppointmentStatus] = frozenset({AppointmentStatus.RESCHEDULE_SUGGESTED})

TRANSITION_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.INSTITUTION})


def parse_status(value: str) -> AppointmentStatus:
    """Map a raw status string to the enum; InvalidStatus for anything else."""
    try:
        return AppointmentStatus(value)
    except ValueError:
        valid = ", ".join(s.value for s in AppointmentStatus)
        raise InvalidStatus(f"Status inválido: {value!r}. Use: {valid}") from None


def ensure_can_transition(role: UserRole) -> None:
    """Role gate for any lifecycle change."""
    if role not in TRANSITION_ROLES:
        raise Forbidden(f"Usuários {role.value} não podem alterar o status dos agendamentos")


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def check_transition(
    current: AppointmentStatus,
    target: AppointmentStatus,
    role: UserRole,
    *,
    with_new_slot: bool = False,
) -> None:
    """Validate one lifecycle move.

    Raises:
        Forbidden: The role may not change statuses at all.
        InvalidTransition: The move is not in the table, or needs a new
            slot that was not supplied.
    """
    ensure_can_transition(role)

    if not can_transition(current, target):
        logger.info("Rejected transition %s -> %s", current.value, target.value)
        raise InvalidTransition(
            f"Não é possível alterar o status de {current.value} para {target.value}"
        )

    if target in REQUIRES_NEW_SLOT and not with_new_slot:
        raise InvalidTransition(
            f"O status {target.value} exige nova data e horário (use sugerir-horario)"
        )


def is_terminal(status: AppointmentStatus) -> bool:
    return not TRANSITIONS.get(status)
