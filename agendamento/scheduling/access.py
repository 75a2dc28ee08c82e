"""Role-based row filter for appointment and block queries.

Admin and consultivo callers see every center; institution callers see only
their own. The filter is a value object applied to SQLAlchemy statements,
so scoping never involves building SQL text. Mutation rights are checked
separately by each service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import Select

from agendamento.models.enums import UserRole
from agendamento.schemas.auth import CurrentUser

_S = TypeVar("_S", bound="Select[Any]")


@dataclass(frozen=True)
class AccessScope:
    """Which center a caller may see; `None` means every center."""

    centro_distribuicao: str | None = None

    @property
    def unrestricted(self) -> bool:
        return self.centro_distribuicao is None

    def allows(self, centro: str) -> bool:
        return self.unrestricted or centro == self.centro_distribuicao

    def narrow(self, centro: str | None) -> AccessScope:
        """Restrict an unrestricted scope to one center on request.

        A scoped caller keeps its own center whatever it asks for.
        """
        if centro and self.unrestricted:
            return AccessScope(centro)
        return self

    def apply(self, stmt: _S, column: Any) -> _S:
        """Add the center predicate on `column` to a select statement."""
        if self.unrestricted:
            return stmt
        return stmt.where(column == self.centro_distribuicao)


def scope_for(user: CurrentUser) -> AccessScope:
    """Row scope for a caller."""
    if user.role in (UserRole.ADMIN, UserRole.CONSULTIVO):
        return AccessScope()
    return AccessScope(user.centro_distribuicao)
