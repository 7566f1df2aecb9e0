"""SQLAlchemy ORM models for the RBAC engine.

Maps to migration DDL in migrations/versions/:
  001_create_rbac_tables.py -> RoleModel, RoleAssignmentModel, AuditEvent

These models live in the Infrastructure layer and implement
persistence for the RoleStore / AssignmentStore / AuditPort interfaces.
The authz layer MUST NOT import this module directly.
"""

from __future__ import annotations

import uuid as _uuid  # noqa: TC003 -- SQLAlchemy resolves Mapped[] annotations at runtime
from datetime import datetime  # noqa: TC003
from typing import Any

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")

# Global scope is stored as the nil UUID so the unique key covers it
# (NULLs are distinct in a plain Postgres unique index).
GLOBAL_SCOPE_KEY = _uuid.UUID(int=0)


class Base(DeclarativeBase):
    """Declarative base for all RBAC ORM models."""


class RoleModel(Base):
    """Role definition: name, level, permission set, system/default flags.

    See: 001_create_rbac_tables migration
    """

    __tablename__ = "roles"

    id: Mapped[_uuid.UUID] = mapped_column(
        _UUID,
        primary_key=True,
        server_default=_GEN_UUID,
    )
    name: Mapped[str] = mapped_column(
        sa.String(50),
        nullable=False,
        comment="lower-cased, immutable",
    )
    display_name: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    description: Mapped[str] = mapped_column(
        sa.Text(),
        nullable=False,
        server_default="",
    )
    permissions: Mapped[list[str]] = mapped_column(
        postgresql.JSONB,
        nullable=False,
        server_default=sa.text("'[]'::jsonb"),
    )
    level: Mapped[int] = mapped_column(
        sa.Integer(),
        nullable=False,
        server_default=sa.text("0"),
    )
    is_system: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("false"),
    )
    is_default: Mapped[bool] = mapped_column(
        sa.Boolean(),
        nullable=False,
        server_default=sa.text("false"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )

    assignments: Mapped[list[RoleAssignmentModel]] = relationship(
        "RoleAssignmentModel",
        back_populates="role",
        lazy="select",
        passive_deletes="all",
    )

    __table_args__ = (
        sa.Index("uq_roles_name", "name", unique=True),
        sa.Index(
            "uq_roles_single_default",
            "is_default",
            unique=True,
            postgresql_where=sa.text("is_default"),
        ),
        sa.Index("ix_roles_level", "level"),
    )


class RoleAssignmentModel(Base):
    """(user, role, scope) binding.

    scope_id = GLOBAL_SCOPE_KEY for global assignments.
    role_id uses ON DELETE RESTRICT: deleting a referenced role fails at the
    database, closing the check-then-delete race.

    See: 001_create_rbac_tables migration
    """

    __tablename__ = "role_assignments"

    id: Mapped[_uuid.UUID] = mapped_column(
        _UUID,
        primary_key=True,
        server_default=_GEN_UUID,
    )
    user_id: Mapped[_uuid.UUID] = mapped_column(_UUID, nullable=False)
    role_id: Mapped[_uuid.UUID] = mapped_column(
        _UUID,
        sa.ForeignKey("roles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    scope_id: Mapped[_uuid.UUID] = mapped_column(
        _UUID,
        nullable=False,
        comment="nil UUID = global scope",
    )
    granted_by: Mapped[_uuid.UUID | None] = mapped_column(_UUID, nullable=True)
    granted_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=True,
    )

    role: Mapped[RoleModel] = relationship(
        "RoleModel",
        back_populates="assignments",
        lazy="select",
    )

    __table_args__ = (
        sa.UniqueConstraint(
            "user_id",
            "role_id",
            "scope_id",
            name="uq_role_assignments_user_role_scope",
        ),
        sa.Index("ix_role_assignments_user_id", "user_id"),
        sa.Index("ix_role_assignments_role_id", "role_id"),
    )


class AuditEvent(Base):
    """Append-only audit event record for RBAC mutations.

    Immutable by design: no updated_at column, no update/delete operations.

    See: 001_create_rbac_tables migration
    """

    __tablename__ = "rbac_audit_events"

    id: Mapped[_uuid.UUID] = mapped_column(
        _UUID,
        primary_key=True,
        server_default=_GEN_UUID,
    )
    action: Mapped[str] = mapped_column(
        sa.String(128),
        nullable=False,
        comment="e.g. role.grant, role.revoke, role.define",
    )
    actor_id: Mapped[_uuid.UUID | None] = mapped_column(_UUID, nullable=True)
    target_id: Mapped[_uuid.UUID | None] = mapped_column(_UUID, nullable=True)
    role_id: Mapped[_uuid.UUID | None] = mapped_column(_UUID, nullable=True)
    role_name: Mapped[str] = mapped_column(
        sa.String(50),
        nullable=False,
        server_default="",
    )
    scope_id: Mapped[_uuid.UUID | None] = mapped_column(_UUID, nullable=True)
    detail: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB,
        nullable=False,
        server_default=sa.text("'{}'::jsonb"),
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=_NOW,
    )

    __table_args__ = (
        sa.Index("ix_rbac_audit_events_action", "action"),
        sa.Index("ix_rbac_audit_events_target_id", "target_id"),
        sa.Index("ix_rbac_audit_events_created_at", "created_at"),
    )


__all__ = [
    "GLOBAL_SCOPE_KEY",
    "AuditEvent",
    "Base",
    "RoleAssignmentModel",
    "RoleModel",
]
