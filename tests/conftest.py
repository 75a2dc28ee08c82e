"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from agendamento.config import settings


@pytest.fixture(autouse=True)
def _jwt_secret(monkeypatch):
    """Every test signs and verifies tokens with a fixed secret."""
    monkeypatch.setattr(settings.security, "jwt_secret", "test-secret")
