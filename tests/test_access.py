"""Tests for the role-based row filter."""

from __future__ import annotations

import uuid

from sqlalchemy import select

from agendamento.models.appointment import Appointment
from agendamento.models.enums import UserRole
from agendamento.schemas.auth import CurrentUser
from agendamento.scheduling.access import AccessScope, scope_for


def _make_user(role: UserRole, cd: str = "all") -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), username=f"{role.value}-user", role=role, centro_distribuicao=cd)


def _where(stmt) -> str:
    return str(stmt.compile(compile_kwargs={"literal_binds": True}))


class TestScopeFor:
    def test_admin_unrestricted(self):
        assert scope_for(_make_user(UserRole.ADMIN)).unrestricted

    def test_consultivo_unrestricted(self):
        assert scope_for(_make_user(UserRole.CONSULTIVO)).unrestricted

    def test_institution_bound_to_own_center(self):
        scope = scope_for(_make_user(UserRole.INSTITUTION, "Bahia"))
        assert scope.centro_distribuicao == "Bahia"
        assert scope.allows("Bahia")
        assert not scope.allows("Pernambuco")


class TestApply:
    def test_unrestricted_leaves_statement_alone(self):
        stmt = select(Appointment)
        assert AccessScope().apply(stmt, Appointment.centro_distribuicao) is stmt

    def test_scoped_adds_center_predicate(self):
        stmt = AccessScope("Pernambuco").apply(select(Appointment), Appointment.centro_distribuicao)
        sql = _where(stmt)
        assert "WHERE agendamentos.centro_distribuicao = 'Pernambuco'" in sql

    def test_value_is_bound_not_concatenated(self):
        hostile = "Bahia' OR '1'='1"
        stmt = AccessScope(hostile).apply(select(Appointment), Appointment.centro_distribuicao)
        compiled = stmt.compile()
        assert hostile in compiled.params.values()
        assert hostile not in str(compiled)


class TestNarrow:
    def test_unrestricted_can_narrow(self):
        assert AccessScope().narrow("Bahia") == AccessScope("Bahia")

    def test_none_keeps_unrestricted(self):
        assert AccessScope().narrow(None).unrestricted

    def test_scoped_ignores_requested_center(self):
        assert AccessScope("Bahia").narrow("Pernambuco") == AccessScope("Bahia")
