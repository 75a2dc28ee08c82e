"""Tests for agendamento/security/retention.py — data retention enforcement."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger

from agendamento.schemas.events import EventType
from agendamento.security.retention import (
    RETENTION_JOB_ID,
    _delete_expired_appointments,
    _delete_expired_audit_logs,
    _delete_expired_blocks,
    build_retention_scheduler,
    enforce_data_retention,
    run_scheduled_retention,
)


@pytest.fixture
def mock_db():
    """Create a mock async DB session."""
    db = AsyncMock()
    db.execute = AsyncMock()
    db.commit = AsyncMock()
    return db


def _rowcount(n: int) -> MagicMock:
    result = MagicMock()
    result.rowcount = n
    return result


class TestDeleteHelpers:
    @pytest.mark.asyncio
    async def test_appointments(self, mock_db):
        mock_db.execute.return_value = _rowcount(3)
        assert await _delete_expired_appointments(mock_db, 30) == 3
        mock_db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_blocks_none_expired(self, mock_db):
        mock_db.execute.return_value = _rowcount(0)
        assert await _delete_expired_blocks(mock_db, 30) == 0

    @pytest.mark.asyncio
    async def test_audit_logs(self, mock_db):
        mock_db.execute.return_value = _rowcount(12)
        assert await _delete_expired_audit_logs(mock_db) == 12


class TestEnforceDataRetention:
    @pytest.mark.asyncio
    async def test_summary_aggregates_totals(self, mock_db):
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = mock_db

        with (
            patch("agendamento.security.retention.async_session_factory", factory),
            patch(
                "agendamento.security.retention._delete_expired_appointments",
                new_callable=AsyncMock,
                return_value=4,
            ) as mock_appts,
            patch("agendamento.security.retention._delete_expired_blocks", new_callable=AsyncMock, return_value=2),
            patch("agendamento.security.retention._delete_expired_audit_logs", new_callable=AsyncMock, return_value=1),
            patch("agendamento.security.retention.emit", new_callable=AsyncMock) as mock_emit,
        ):
            summary = await enforce_data_retention(7, actor="admin")

        assert summary == {
            "appointments_deleted": 4,
            "blocks_deleted": 2,
            "audit_logs_deleted": 1,
            "total_deleted": 7,
        }
        assert mock_appts.call_args.args[1] == 7
        mock_db.commit.assert_awaited_once()

        event = mock_emit.call_args.args[0]
        assert event.event_type == EventType.SYSTEM_MAINTENANCE
        assert event.actor_id == "admin"
        assert event.data["days"] == 7

    @pytest.mark.asyncio
    async def test_default_days_from_settings(self, mock_db, monkeypatch):
        from agendamento.config import settings

        monkeypatch.setattr(settings, "retention_days", 45)
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = mock_db

        with (
            patch("agendamento.security.retention.async_session_factory", factory),
            patch(
                "agendamento.security.retention._delete_expired_appointments",
                new_callable=AsyncMock,
                return_value=0,
            ) as mock_appts,
            patch("agendamento.security.retention._delete_expired_blocks", new_callable=AsyncMock, return_value=0),
            patch("agendamento.security.retention._delete_expired_audit_logs", new_callable=AsyncMock, return_value=0),
            patch("agendamento.security.retention.emit", new_callable=AsyncMock),
        ):
            summary = await enforce_data_retention()

        assert summary["total_deleted"] == 0
        assert mock_appts.call_args.args[1] == 45

    @pytest.mark.asyncio
    async def test_errors_propagate(self, mock_db):
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = mock_db

        with (
            patch("agendamento.security.retention.async_session_factory", factory),
            patch(
                "agendamento.security.retention._delete_expired_appointments",
                new_callable=AsyncMock,
                side_effect=RuntimeError("db down"),
            ),
            patch("agendamento.security.retention.emit", new_callable=AsyncMock) as mock_emit,
        ):
            with pytest.raises(RuntimeError):
                await enforce_data_retention()

        mock_db.commit.assert_not_awaited()
        mock_emit.assert_not_awaited()


def _trigger_fields(trigger) -> dict[str, str]:
    return {field.name: str(field) for field in trigger.fields}


class TestRetentionSchedule:
    def test_monthly_at_two_local_time(self):
        scheduler = build_retention_scheduler()
        job = scheduler.get_job(RETENTION_JOB_ID)

        assert job is not None
        assert isinstance(job.trigger, CronTrigger)
        fields = _trigger_fields(job.trigger)
        assert fields["minute"] == "0"
        assert fields["hour"] == "2"
        assert fields["day"] == "1"
        assert fields["month"] == "*"
        assert str(job.trigger.timezone) == "America/Sao_Paulo"
        assert job.func is run_scheduled_retention

    def test_cron_is_configurable(self, monkeypatch):
        from agendamento.config import settings

        monkeypatch.setattr(settings, "retention_cron", "30 3 * * 0")
        job = build_retention_scheduler().get_job(RETENTION_JOB_ID)

        fields = _trigger_fields(job.trigger)
        assert fields["minute"] == "30"
        assert fields["hour"] == "3"
        assert fields["day_of_week"] != "*"

    @pytest.mark.asyncio
    async def test_failed_run_is_logged_not_raised(self):
        with patch(
            "agendamento.security.retention.enforce_data_retention",
            new_callable=AsyncMock,
            side_effect=RuntimeError("db down"),
        ) as mock_retention:
            await run_scheduled_retention()

        mock_retention.assert_awaited_once_with()
