"""User model — a staff or consultation account for the scheduling dashboards."""

from __future__ import annotations

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from agendamento.models.base import Base, TimestampMixin
from agendamento.models.enums import ALL_CENTERS


class User(TimestampMixin, Base):
    """A login account. Institution accounts are bound to one center."""

    __tablename__ = "usuarios"

    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False, comment="bcrypt hash")
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    cd: Mapped[str] = mapped_column(String(50), default=ALL_CENTERS, nullable=False)

    # Forces a password change on next login
    primeira_senha: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User username={self.username} role={self.role} cd={self.cd}>"
