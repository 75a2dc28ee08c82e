"""Tests for agendamento/security/auth.py and security/accounts.py."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agendamento.config import settings
from agendamento.errors import (
    AuthenticationError,
    Forbidden,
    NotFound,
    ServiceUnavailable,
    ValidationError,
)
from agendamento.models.enums import UserRole
from agendamento.models.user import User
from agendamento.schemas.auth import CurrentUser
from agendamento.schemas.events import EventType
from agendamento.security import accounts
from agendamento.security.auth import (
    create_access_token,
    decode_access_token,
    hash_password,
    require_admin,
    require_staff,
    verify_password,
)


def _make_user(role: str = "institution", cd: str = "Bahia", password: str = "Brisanet123") -> User:
    return User(
        id=uuid.uuid4(),
        username=cd,
        password=hash_password(password),
        role=role,
        cd=cd,
        primeira_senha=True,
    )


def _make_caller(role: UserRole = UserRole.INSTITUTION) -> CurrentUser:
    return CurrentUser(id=uuid.uuid4(), username="Bahia", role=role, centro_distribuicao="Bahia")


# ── Passwords ────────────────────────────────────────────────────────


class TestPasswords:
    def test_hash_is_not_plaintext(self):
        hashed = hash_password("segredo1")
        assert hashed != "segredo1"
        assert hashed.startswith("$2")

    def test_verify_roundtrip(self):
        hashed = hash_password("segredo1")
        assert verify_password("segredo1", hashed)
        assert not verify_password("segredo2", hashed)

    def test_malformed_hash_never_matches(self):
        assert verify_password("segredo1", "not-a-hash") is False


# ── Tokens ───────────────────────────────────────────────────────────


class TestTokens:
    def test_claims_carry_identity(self):
        user = _make_user()
        caller = decode_access_token(create_access_token(user))

        assert caller.id == user.id
        assert caller.username == "Bahia"
        assert caller.role == UserRole.INSTITUTION
        assert caller.centro_distribuicao == "Bahia"

    def test_expired_token_rejected(self):
        issued = datetime.now(UTC) - timedelta(hours=settings.security.token_expire_hours + 1)
        token = create_access_token(_make_user(), now=issued)

        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_tampered_token_rejected(self):
        token = create_access_token(_make_user())
        with pytest.raises(AuthenticationError):
            decode_access_token(token[:-2] + ("aa" if not token.endswith("aa") else "bb"))

    def test_wrong_secret_rejected(self, monkeypatch):
        token = create_access_token(_make_user())
        monkeypatch.setattr(settings.security, "jwt_secret", "another-secret")
        with pytest.raises(AuthenticationError):
            decode_access_token(token)

    def test_missing_secret_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(settings.security, "jwt_secret", "")
        with pytest.raises(ServiceUnavailable):
            create_access_token(_make_user())


# ── Role gates ───────────────────────────────────────────────────────


class TestRoleGates:
    @pytest.mark.asyncio
    async def test_admin_gate(self):
        admin = _make_caller(UserRole.ADMIN)
        assert await require_admin(admin) is admin

        with pytest.raises(Forbidden):
            await require_admin(_make_caller(UserRole.INSTITUTION))

    @pytest.mark.asyncio
    async def test_staff_gate_rejects_consultivo(self):
        assert await require_staff(_make_caller(UserRole.INSTITUTION))
        with pytest.raises(Forbidden):
            await require_staff(_make_caller(UserRole.CONSULTIVO))


# ── Accounts ─────────────────────────────────────────────────────────


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_valid_credentials(self):
        user = _make_user()
        with (
            patch("agendamento.security.accounts.get_user_by_username", new_callable=AsyncMock, return_value=user),
            patch("agendamento.security.accounts.emit", new_callable=AsyncMock) as mock_emit,
        ):
            result = await accounts.authenticate(AsyncMock(), "Bahia", "Brisanet123")

        assert result is user
        assert mock_emit.call_args.args[0].event_type == EventType.AUTH_LOGIN

    @pytest.mark.asyncio
    async def test_wrong_password(self):
        user = _make_user()
        with (
            patch("agendamento.security.accounts.get_user_by_username", new_callable=AsyncMock, return_value=user),
            patch("agendamento.security.accounts.emit", new_callable=AsyncMock) as mock_emit,
        ):
            with pytest.raises(AuthenticationError) as exc_info:
                await accounts.authenticate(AsyncMock(), "Bahia", "errada")

        assert exc_info.value.message == accounts.INVALID_CREDENTIALS
        assert mock_emit.call_args.args[0].event_type == EventType.AUTH_LOGIN_FAILED

    @pytest.mark.asyncio
    async def test_unknown_user_same_message(self):
        with (
            patch("agendamento.security.accounts.get_user_by_username", new_callable=AsyncMock, return_value=None),
            patch("agendamento.security.accounts.emit", new_callable=AsyncMock),
        ):
            with pytest.raises(AuthenticationError) as exc_info:
                await accounts.authenticate(AsyncMock(), "ninguem", "Brisanet123")

        assert exc_info.value.message == accounts.INVALID_CREDENTIALS


class TestChangePassword:
    @pytest.mark.asyncio
    async def test_too_short(self):
        db = AsyncMock()
        with pytest.raises(ValidationError):
            await accounts.change_password(db, _make_caller(), "abc")
        db.get.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clears_first_login_flag(self):
        user = _make_user()
        db = AsyncMock()
        db.get.return_value = user

        with patch("agendamento.security.accounts.emit", new_callable=AsyncMock) as mock_emit:
            await accounts.change_password(db, _make_caller(), "novasenha")

        assert user.primeira_senha is False
        assert verify_password("novasenha", user.password)
        db.flush.assert_awaited_once()
        assert mock_emit.call_args.args[0].event_type == EventType.PASSWORD_CHANGED


class TestResetPassword:
    @pytest.mark.asyncio
    async def test_unknown_user(self):
        with patch("agendamento.security.accounts.get_user_by_username", new_callable=AsyncMock, return_value=None):
            with pytest.raises(NotFound):
                await accounts.reset_password(AsyncMock(), _make_caller(UserRole.ADMIN), "ninguem")

    @pytest.mark.asyncio
    async def test_restores_default_password(self):
        user = _make_user(password="personalizada")
        user.primeira_senha = False
        db = AsyncMock()
        db.execute.return_value = MagicMock(scalar_one_or_none=MagicMock(return_value=user))

        with patch("agendamento.security.accounts.emit", new_callable=AsyncMock):
            await accounts.reset_password(db, _make_caller(UserRole.ADMIN), "Bahia")

        assert user.primeira_senha is True
        assert verify_password(settings.security.default_password, user.password)
