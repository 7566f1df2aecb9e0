"""Create roles, role_assignments and rbac_audit_events tables.

Revision ID: 001_rbac
Revises: None
Create Date: 2026-10-18

Rollback: reverse-drop rbac_audit_events, role_assignments, roles.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "001_rbac"
down_revision = None
branch_labels = None
depends_on = None

_UUID = postgresql.UUID(as_uuid=True)
_NOW = sa.text("now()")
_GEN_UUID = sa.text("gen_random_uuid()")


def upgrade() -> None:
    # --- roles ---
    op.create_table(
        "roles",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column(
            "name",
            sa.String(50),
            nullable=False,
            comment="lower-cased, immutable",
        ),
        sa.Column("display_name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column(
            "permissions",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "is_system",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "is_default",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
    )
    op.create_index("uq_roles_name", "roles", ["name"], unique=True)
    # At most one row may carry is_default = true
    op.create_index(
        "uq_roles_single_default",
        "roles",
        ["is_default"],
        unique=True,
        postgresql_where=sa.text("is_default"),
    )
    op.create_index("ix_roles_level", "roles", ["level"])

    # --- role_assignments ---
    op.create_table(
        "role_assignments",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column("user_id", _UUID, nullable=False),
        sa.Column(
            "role_id",
            _UUID,
            sa.ForeignKey("roles.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "scope_id",
            _UUID,
            nullable=False,
            comment="nil UUID = global scope",
        ),
        sa.Column("granted_by", _UUID, nullable=True),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "user_id",
            "role_id",
            "scope_id",
            name="uq_role_assignments_user_role_scope",
        ),
    )
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"])
    op.create_index("ix_role_assignments_role_id", "role_assignments", ["role_id"])

    # --- rbac_audit_events ---
    op.create_table(
        "rbac_audit_events",
        sa.Column("id", _UUID, primary_key=True, server_default=_GEN_UUID),
        sa.Column(
            "action",
            sa.String(128),
            nullable=False,
            comment="e.g. role.grant, role.revoke, role.define",
        ),
        sa.Column("actor_id", _UUID, nullable=True),
        sa.Column("target_id", _UUID, nullable=True),
        sa.Column("role_id", _UUID, nullable=True),
        sa.Column("role_name", sa.String(50), nullable=False, server_default=""),
        sa.Column("scope_id", _UUID, nullable=True),
        sa.Column(
            "detail",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=_NOW,
        ),
    )
    op.create_index("ix_rbac_audit_events_action", "rbac_audit_events", ["action"])
    op.create_index("ix_rbac_audit_events_target_id", "rbac_audit_events", ["target_id"])
    op.create_index("ix_rbac_audit_events_created_at", "rbac_audit_events", ["created_at"])


def downgrade() -> None:
    op.drop_table("rbac_audit_events")
    op.drop_table("role_assignments")
    op.drop_table("roles")
