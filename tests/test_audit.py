"""Tests for the audit-log subscriber."""

from __future__ import annotations

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agendamento.models.audit import AuditLog
from agendamento.schemas.events import EventType, SystemEvent
from agendamento.security.audit import audit_on_event, to_audit_row


def _event(**overrides) -> SystemEvent:
    fields = {
        "event_type": EventType.APPOINTMENT_STATUS_CHANGED,
        "appointment_id": uuid.uuid4(),
        "actor_id": "Bahia",
        "actor_role": "institution",
        "data": {"from_status": "pending_confirmation", "to_status": "confirmed"},
        "source_module": "scheduling.service",
    }
    fields.update(overrides)
    return SystemEvent(**fields)


class TestToAuditRow:
    def test_copies_event_fields(self):
        event = _event()
        row = to_audit_row(event)

        assert isinstance(row, AuditLog)
        assert row.event_type == "appointment.status_changed"
        assert row.appointment_id == event.appointment_id
        assert row.actor_id == "Bahia"
        assert row.data["to_status"] == "confirmed"
        assert row.data["source"] == "scheduling.service"

    def test_without_source(self):
        row = to_audit_row(_event(source_module=None, data={"known_user": False}))
        assert row.data == {"known_user": False}


class TestAuditOnEvent:
    @pytest.mark.asyncio
    async def test_commits_row(self):
        db = AsyncMock()
        db.add = MagicMock()
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = db

        with patch("agendamento.security.audit.async_session_factory", factory):
            await audit_on_event(_event())

        assert isinstance(db.add.call_args.args[0], AuditLog)
        db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_database_error_not_raised(self):
        db = AsyncMock()
        db.add = MagicMock()
        db.commit.side_effect = RuntimeError("db down")
        factory = MagicMock()
        factory.return_value.__aenter__.return_value = db

        with patch("agendamento.security.audit.async_session_factory", factory):
            await audit_on_event(_event())
