"""Tests for delivery confirmation and attendance statistics."""

from __future__ import annotations

import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agendamento.errors import Forbidden, InvalidStatus, InvalidTransition, NotFound
from agendamento.models.enums import AppointmentStatus, UserRole
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.entrega import DeliveryConfirmation
from agendamento.schemas.events import EventType
from agendamento.scheduling.delivery import (
    DeliveryService,
    DeliveryStats,
    attendance_rate,
    summarize_outcomes,
)


def _make_user(role: UserRole = UserRole.INSTITUTION, cd: str = "Bahia") -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), username=f"{cd}-{role.value}", role=role, centro_distribuicao=cd)


def _make_appointment(status: str = AppointmentStatus.CONFIRMED.value) -> MagicMock:
    appt = MagicMock()
    appt.id = uuid.uuid4()
    appt.centro_distribuicao = "Bahia"
    appt.data_entrega = date(2025, 8, 7)
    appt.horario_entrega = "08:00"
    appt.status = status
    appt.status_entrega = None
    return appt


def _scalar_result(value) -> MagicMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


# ── Attendance rate ──────────────────────────────────────────────────


class TestAttendanceRate:
    def test_three_of_four(self):
        """arrived, arrived, no_show, arrived_late -> 75."""
        assert attendance_rate(arrived=2, arrived_late=1, outcomes=4) == 75

    def test_no_outcomes(self):
        assert attendance_rate(0, 0, 0) == 0

    def test_all_present(self):
        assert attendance_rate(3, 2, 5) == 100

    def test_rounds_half_up(self):
        assert attendance_rate(2, 0, 3) == 67
        assert attendance_rate(1, 0, 8) == 13
        assert attendance_rate(1, 0, 6) == 17


class TestSummarizeOutcomes:
    def test_overall_and_per_center(self):
        rows = [
            ("Bahia", "arrived", 2),
            ("Bahia", "no_show", 1),
            ("Bahia", "arrived_late", 1),
            ("Bahia", None, 3),
            ("Pernambuco", "arrived", 1),
        ]
        overall, by_center = summarize_outcomes(rows)

        assert overall.total_entregas == 5
        assert overall.pendentes_confirmacao == 3
        assert overall.taxa_comparecimento == 80

        bahia = by_center["Bahia"].as_dict()
        assert bahia == {
            "total_entregas": 4,
            "compareceram": 2,
            "nao_compareceram": 1,
            "compareceram_atraso": 1,
            "pendentes_confirmacao": 3,
            "taxa_comparecimento": 75,
        }
        assert by_center["Pernambuco"].taxa_comparecimento == 100

    def test_empty(self):
        overall, by_center = summarize_outcomes([])
        assert overall == DeliveryStats()
        assert overall.taxa_comparecimento == 0
        assert by_center == {}


# ── Confirmation ─────────────────────────────────────────────────────


class TestConfirmDelivery:
    @pytest.mark.asyncio
    async def test_records_late_arrival(self):
        service = DeliveryService()
        db = AsyncMock()
        appt = _make_appointment()
        db.execute.return_value = _scalar_result(appt)
        user = _make_user()
        body = DeliveryConfirmation(
            status_entrega="arrived_late",
            horario_chegada="08:15",
            entregue_no_horario=False,
            transportador_informou=True,
            observacoes_entrega="Trânsito na BR",
        )

        with patch("agendamento.scheduling.delivery.emit", new_callable=AsyncMock) as mock_emit:
            result = await service.confirm_delivery(db, user, appt.id, body)

        assert result.status_entrega == "arrived_late"
        assert result.horario_chegada == "08:15"
        assert result.entregue_no_horario is False
        assert result.transportador_informou is True
        assert result.confirmado_entrega_por == user.username
        assert result.data_confirmacao_entrega is not None
        db.flush.assert_awaited_once()
        assert mock_emit.call_args.args[0].event_type == EventType.DELIVERY_CONFIRMED

    @pytest.mark.asyncio
    async def test_overwrites_previous_outcome(self):
        service = DeliveryService()
        db = AsyncMock()
        appt = _make_appointment()
        appt.status_entrega = "no_show"
        db.execute.return_value = _scalar_result(appt)

        with patch("agendamento.scheduling.delivery.emit", new_callable=AsyncMock) as mock_emit:
            await service.confirm_delivery(db, _make_user(), appt.id, DeliveryConfirmation(status_entrega="arrived"))

        assert appt.status_entrega == "arrived"
        assert mock_emit.call_args.args[0].data["previous"] == "no_show"

    @pytest.mark.asyncio
    async def test_consultivo_forbidden(self):
        service = DeliveryService()
        db = AsyncMock()

        with pytest.raises(Forbidden):
            await service.confirm_delivery(
                db, _make_user(UserRole.CONSULTIVO, "all"), uuid.uuid4(), DeliveryConfirmation(status_entrega="arrived")
            )
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_outcome(self):
        service = DeliveryService()
        db = AsyncMock()

        with pytest.raises(InvalidStatus):
            await service.confirm_delivery(
                db, _make_user(), uuid.uuid4(), DeliveryConfirmation(status_entrega="compareceu")
            )

    @pytest.mark.asyncio
    async def test_other_center(self):
        service = DeliveryService()
        db = AsyncMock()
        db.execute.return_value = _scalar_result(None)

        with pytest.raises(NotFound):
            await service.confirm_delivery(
                db, _make_user(cd="Pernambuco"), uuid.uuid4(), DeliveryConfirmation(status_entrega="arrived")
            )

    @pytest.mark.asyncio
    async def test_pending_appointment_rejected(self):
        service = DeliveryService()
        db = AsyncMock()
        db.execute.return_value = _scalar_result(
            _make_appointment(AppointmentStatus.PENDING_CONFIRMATION.value)
        )

        with pytest.raises(InvalidTransition):
            await service.confirm_delivery(
                db, _make_user(), uuid.uuid4(), DeliveryConfirmation(status_entrega="arrived")
            )

    @pytest.mark.asyncio
    async def test_after_suggestion_allowed(self):
        service = DeliveryService()
        db = AsyncMock()
        appt = _make_appointment(AppointmentStatus.RESCHEDULE_SUGGESTED.value)
        db.execute.return_value = _scalar_result(appt)

        with patch("agendamento.scheduling.delivery.emit", new_callable=AsyncMock):
            await service.confirm_delivery(db, _make_user(), appt.id, DeliveryConfirmation(status_entrega="no_show"))

        assert appt.status_entrega == "no_show"


# ── Statistics ───────────────────────────────────────────────────────


class TestAttendanceStats:
    @pytest.mark.asyncio
    async def test_scoped_to_own_center(self):
        service = DeliveryService()
        db = AsyncMock()
        result = MagicMock()
        result.all.return_value = [
            ("Bahia", "arrived", 2),
            ("Bahia", "no_show", 1),
            ("Bahia", "arrived_late", 1),
        ]
        db.execute.return_value = result

        with patch("agendamento.scheduling.delivery.today_local", return_value=date(2025, 8, 31)):
            stats = await service.attendance_stats(db, _make_user(cd="Bahia"))

        assert stats["taxa_comparecimento"] == 75
        assert stats["cd"] == "Bahia"
        assert stats["periodo_dias"] == 30
        assert stats["desde"] == "2025-08-01"
        assert list(stats["por_cd"]) == ["Bahia"]

        stmt = db.execute.call_args.args[0]
        assert "Bahia" in stmt.compile().params.values()

    @pytest.mark.asyncio
    async def test_admin_can_narrow_and_set_period(self):
        service = DeliveryService()
        db = AsyncMock()
        result = MagicMock()
        result.all.return_value = []
        db.execute.return_value = result

        stats = await service.attendance_stats(db, _make_user(UserRole.ADMIN, "all"), "Pernambuco", 7)

        assert stats["cd"] == "Pernambuco"
        assert stats["periodo_dias"] == 7
        assert stats["taxa_comparecimento"] == 0


class TestListings:
    @pytest.mark.asyncio
    async def test_today_uses_local_date(self):
        service = DeliveryService()
        db = AsyncMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        db.execute.return_value = result
        today = date(2025, 8, 7)

        with patch("agendamento.scheduling.delivery.today_local", return_value=today):
            await service.deliveries_today(db, _make_user())

        stmt = db.execute.call_args.args[0]
        params = stmt.compile().params.values()
        assert today in params
        assert "Bahia" in params

    @pytest.mark.asyncio
    async def test_pending_from_yesterday(self):
        service = DeliveryService()
        db = AsyncMock()
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        db.execute.return_value = result

        with patch("agendamento.scheduling.delivery.today_local", return_value=date(2025, 8, 7)):
            await service.pending_deliveries(db, _make_user(UserRole.ADMIN, "all"))

        stmt = db.execute.call_args.args[0]
        assert date(2025, 8, 6) in stmt.compile().params.values()
