"""Assignment Manager: grant, revoke and list (user, role, scope) bindings.

- grant is idempotent: a duplicate tuple returns the existing record
- revoke of an absent assignment is a no-op, not an error
- every effective mutation invalidates the user's cached resolutions
  inline (before returning) and then appends an audit entry
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final
from uuid import uuid4

from src.authz.audit import record_audit
from src.shared.errors import NotFoundError, ValidationError
from src.shared.types import Assignment, AuditEntry

if TYPE_CHECKING:
    from uuid import UUID

    from src.authz.cache import ResolutionCache
    from src.ports.assignment_store import AssignmentStore
    from src.ports.audit_port import AuditPort
    from src.ports.role_store import RoleStore

logger = logging.getLogger(__name__)


class _AllScopes:
    """Sentinel: list assignments in every scope (None already means global)."""

    def __repr__(self) -> str:
        return "ALL_SCOPES"


ALL_SCOPES: Final = _AllScopes()


def scope_label(scope_id: UUID | None) -> str:
    return "global" if scope_id is None else str(scope_id)


class AssignmentManager:
    """Grants and revokes role assignments."""

    def __init__(
        self,
        *,
        roles: RoleStore,
        assignments: AssignmentStore,
        audit: AuditPort | None = None,
        cache: ResolutionCache | None = None,
    ) -> None:
        self._roles = roles
        self._assignments = assignments
        self._audit = audit
        self._cache = cache

    async def grant(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_id: UUID | None,
        granted_by: UUID | None,
        *,
        expires_at: datetime | None = None,
    ) -> Assignment:
        """Assign a role to a user in a scope (None = global).

        Returns the existing assignment unchanged when the user already holds
        the role in that scope.

        Raises:
            NotFoundError: Unknown role.
            ValidationError: expires_at is naive or already in the past.
        """
        role = await self._roles.get(role_id)
        if role is None:
            raise NotFoundError("Role", str(role_id))

        now = datetime.now(UTC)
        if expires_at is not None:
            if expires_at.tzinfo is None:
                raise ValidationError("expires_at must be timezone-aware", field="expires_at")
            if expires_at <= now:
                raise ValidationError("expires_at must be in the future", field="expires_at")

        assignment, created = await self._assignments.insert_if_absent(
            Assignment(
                assignment_id=uuid4(),
                user_id=user_id,
                role_id=role_id,
                scope_id=scope_id,
                granted_by=granted_by,
                granted_at=now,
                expires_at=expires_at,
            ),
        )
        if not created:
            logger.info(
                "User %s already has role %s in scope %s",
                user_id,
                role.name,
                scope_label(scope_id),
            )
            return assignment

        if self._cache is not None:
            await self._cache.invalidate_user(user_id)
        logger.info(
            "Assigned role %s to user %s in scope %s",
            role.name,
            user_id,
            scope_label(scope_id),
        )
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.grant",
                actor=granted_by,
                timestamp=now,
                target=user_id,
                role_id=role_id,
                role_name=role.name,
                scope_id=scope_id,
                detail={"expires_at": expires_at.isoformat()} if expires_at else {},
            ),
        )
        return assignment

    async def revoke(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_id: UUID | None,
        *,
        revoked_by: UUID | None = None,
    ) -> bool:
        """Remove an assignment. Returns False (no error) if it was absent."""
        removed = await self._assignments.delete_assignment(user_id, role_id, scope_id)
        if not removed:
            logger.info(
                "User %s did not have role %s in scope %s",
                user_id,
                role_id,
                scope_label(scope_id),
            )
            return False

        if self._cache is not None:
            await self._cache.invalidate_user(user_id)

        role = await self._roles.get(role_id)
        role_name = role.name if role is not None else ""
        logger.info(
            "Removed role %s from user %s in scope %s",
            role_name or role_id,
            user_id,
            scope_label(scope_id),
        )
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.revoke",
                actor=revoked_by,
                timestamp=datetime.now(UTC),
                target=user_id,
                role_id=role_id,
                role_name=role_name,
                scope_id=scope_id,
            ),
        )
        return True

    async def list_for_user(
        self,
        user_id: UUID,
        scope_id: UUID | None | _AllScopes = ALL_SCOPES,
    ) -> list[Assignment]:
        """Assignments for a user: every scope by default, or exactly one
        scope (pass None for global-only)."""
        rows = await self._assignments.list_for_user(user_id)
        if isinstance(scope_id, _AllScopes):
            return rows
        return [a for a in rows if a.scope_id == scope_id]

    async def list_for_role(self, role_id: UUID) -> list[Assignment]:
        return await self._assignments.list_for_role(role_id)

    async def users_with_role(self, role_id: UUID) -> list[UUID]:
        """Distinct users holding a role in any scope, in grant order."""
        rows = await self._assignments.list_for_role(role_id)
        return list(dict.fromkeys(a.user_id for a in rows))
