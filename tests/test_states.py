"""Tests for the appointment lifecycle state machine."""

from __future__ import annotations

import pytest

from agendamento.errors import Forbidden, InvalidStatus, InvalidTransition
from agendamento.models.enums import AppointmentStatus, UserRole
from agendamento.scheduling.states import (
    TRANSITIONS,
    can_transition,
    check_transition,
    is_terminal,
    parse_status,
)

PENDING = AppointmentStatus.PENDING_CONFIRMATION
CONFIRMED = AppointmentStatus.CONFIRMED
SUGGESTED = AppointmentStatus.RESCHEDULE_SUGGESTED


class TestTransitionTable:
    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(AppointmentStatus)

    @pytest.mark.parametrize(
        ("current", "target", "allowed"),
        [
            (PENDING, CONFIRMED, True),
            (PENDING, SUGGESTED, True),
            (SUGGESTED, CONFIRMED, True),
            (SUGGESTED, PENDING, False),
            (CONFIRMED, PENDING, False),
            (CONFIRMED, SUGGESTED, False),
            (CONFIRMED, CONFIRMED, False),
            (PENDING, PENDING, False),
        ],
    )
    def test_can_transition(self, current, target, allowed):
        assert can_transition(current, target) is allowed

    def test_confirmed_is_terminal(self):
        assert is_terminal(CONFIRMED)
        assert not is_terminal(PENDING)


class TestParseStatus:
    def test_known(self):
        assert parse_status("confirmed") is CONFIRMED

    def test_unknown(self):
        with pytest.raises(InvalidStatus):
            parse_status("cancelled")


class TestCheckTransition:
    def test_consultivo_forbidden(self):
        with pytest.raises(Forbidden):
            check_transition(PENDING, CONFIRMED, UserRole.CONSULTIVO)

    def test_institution_confirms(self):
        check_transition(PENDING, CONFIRMED, UserRole.INSTITUTION)

    def test_admin_confirms_suggested(self):
        check_transition(SUGGESTED, CONFIRMED, UserRole.ADMIN)

    def test_not_in_table(self):
        with pytest.raises(InvalidTransition):
            check_transition(CONFIRMED, PENDING, UserRole.ADMIN)

    def test_suggestion_needs_new_slot(self):
        with pytest.raises(InvalidTransition):
            check_transition(PENDING, SUGGESTED, UserRole.INSTITUTION)

    def test_suggestion_with_new_slot(self):
        check_transition(PENDING, SUGGESTED, UserRole.INSTITUTION, with_new_slot=True)
