"""Shared domain types used across layers.

These types flow through Port interfaces and must remain stable.
ORM counterparts live in src.infra.models and are converted at the
adapter boundary; nothing above the infra layer sees ORM rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 -- used at runtime in dataclass fields
from typing import Any
from uuid import UUID  # noqa: TC003 -- used at runtime in dataclass fields

# -- Role model --


@dataclass(frozen=True)
class Role:
    """A named, leveled bundle of permissions.

    ``level`` orders roles for display and guards permission edits; it never
    grants anything by itself.
    """

    role_id: UUID
    name: str
    display_name: str
    level: int
    permissions: frozenset[str] = field(default_factory=frozenset)
    description: str = ""
    is_system: bool = False
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


# -- Assignment model --


@dataclass(frozen=True)
class Assignment:
    """Binding of (user, role, scope). ``scope_id=None`` means global."""

    assignment_id: UUID
    user_id: UUID
    role_id: UUID
    scope_id: UUID | None
    granted_by: UUID | None
    granted_at: datetime
    expires_at: datetime | None = None

    @property
    def key(self) -> tuple[UUID, UUID, UUID | None]:
        return (self.user_id, self.role_id, self.scope_id)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at <= now


# -- Acting user --


@dataclass(frozen=True)
class ActorPrivileges:
    """What an acting user holds through explicit assignments in one scope.

    The default-role fallback contributes nothing here: a user with no
    applicable assignment has level 0 and no permissions.
    """

    level: int = 0
    permissions: frozenset[str] = field(default_factory=frozenset)


# -- Audit --


@dataclass(frozen=True)
class AuditEntry:
    """One grant/revoke/role-mutation event for the audit collaborator."""

    action: str  # role.grant | role.revoke | role.define | role.update | role.delete | ...
    actor: UUID | None
    timestamp: datetime
    target: UUID | None = None
    role_id: UUID | None = None
    role_name: str = ""
    scope_id: UUID | None = None
    detail: dict[str, Any] = field(default_factory=dict)


__all__ = [
    "ActorPrivileges",
    "Assignment",
    "AuditEntry",
    "Role",
]
