"""Role Administration: define, edit, seed and delete roles.

- Permission sets are validated against the catalog on every write
- Names are unique case-insensitively and immutable after creation
- At most one default role; a second default is rejected (InvariantError),
  move the flag explicitly with set_default_role()
- System roles: never renamed or deleted, only permission-edited
- Permission edits need ROLE_ADMIN_PERMISSION and an actor level above the
  role's, both taken from explicit assignments only
- Level orders roles; it never grants permissions by itself
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from src.authz.audit import record_audit
from src.authz.catalog import validate_permissions
from src.shared.errors import (
    AuthorizationError,
    ConflictError,
    InvariantError,
    NotFoundError,
    ValidationError,
)
from src.shared.types import AuditEntry, Role

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from src.authz.cache import ResolutionCache
    from src.authz.seed import SeedTable
    from src.ports.assignment_store import AssignmentStore
    from src.ports.audit_port import AuditPort
    from src.ports.role_store import RoleStore
    from src.shared.types import ActorPrivileges

logger = logging.getLogger(__name__)

MAX_ROLE_NAME_LENGTH = 50

ROLE_ADMIN_PERMISSION = "users:manage"


def normalize_role_name(name: str) -> str:
    """Lower-case and validate a role name."""
    key = (name or "").strip().lower()
    if not key:
        raise ValidationError("Role name must be non-empty", field="name")
    if len(key) > MAX_ROLE_NAME_LENGTH:
        raise ValidationError(
            f"Role name longer than {MAX_ROLE_NAME_LENGTH} characters: {key}",
            field="name",
        )
    return key


class RoleAdministration:
    """Administrative operations over the Role Store."""

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

    # -- Queries --

    async def get_role(self, role_id: UUID) -> Role:
        role = await self._roles.get(role_id)
        if role is None:
            raise NotFoundError("Role", str(role_id))
        return role

    async def get_role_by_name(self, name: str) -> Role:
        role = await self._roles.get_by_name(name)
        if role is None:
            raise NotFoundError("Role", name.strip().lower())
        return role

    async def list_roles(self) -> list[Role]:
        """All roles, most privileged first."""
        return await self._roles.list_all()

    # -- Mutations --

    async def define_role(
        self,
        *,
        name: str,
        display_name: str = "",
        description: str = "",
        permissions: Iterable[str] = (),
        level: int = 0,
        is_system: bool = False,
        is_default: bool = False,
        actor: UUID | None = None,
    ) -> Role:
        """Create a role.

        Raises:
            ValidationError: Empty/colliding name or unknown permission.
            InvariantError: is_default while another default role exists.
        """
        key = normalize_role_name(name)
        perms = validate_permissions(permissions)

        if await self._roles.get_by_name(key) is not None:
            raise ValidationError(f"Role name already exists: {key}", field="name")

        if is_default:
            current = await self._roles.get_default()
            if current is not None:
                raise InvariantError(
                    "single_default_role",
                    f"Role {current.name} is already the default role; unset it first",
                )

        now = datetime.now(UTC)
        role = await self._roles.add(
            Role(
                role_id=uuid4(),
                name=key,
                display_name=display_name.strip() or key.title(),
                description=description,
                level=level,
                permissions=perms,
                is_system=is_system,
                is_default=is_default,
                created_at=now,
                updated_at=now,
            ),
        )
        logger.info(
            "Role defined: name=%s level=%d permissions=%d default=%s",
            role.name,
            role.level,
            len(role.permissions),
            role.is_default,
        )

        if role.is_default and self._cache is not None:
            await self._cache.invalidate_all()
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.define",
                actor=actor,
                timestamp=now,
                role_id=role.role_id,
                role_name=role.name,
                detail={"level": role.level, "is_default": role.is_default},
            ),
        )
        return role

    async def update_role_permissions(
        self,
        role_id: UUID,
        permissions: Iterable[str],
        *,
        privileges: ActorPrivileges,
        actor: UUID | None = None,
    ) -> Role:
        """Replace a role's permission set.

        Args:
            privileges: What the acting user holds through explicit
                assignments in the relevant scope (see
                PermissionResolver.actor_privileges). It must include
                ROLE_ADMIN_PERMISSION and a level strictly above the role's.

        Raises:
            NotFoundError: Unknown role.
            ValidationError: Unknown permission.
            AuthorizationError: Missing ROLE_ADMIN_PERMISSION, or the actor
                does not outrank the role.
        """
        role = await self.get_role(role_id)
        perms = validate_permissions(permissions)

        if ROLE_ADMIN_PERMISSION not in privileges.permissions:
            raise AuthorizationError(
                required=ROLE_ADMIN_PERMISSION,
                message=f"Editing role {role.name} requires {ROLE_ADMIN_PERMISSION}",
            )
        if privileges.level <= role.level:
            raise AuthorizationError(
                required=f"level>{role.level}",
                message=(
                    f"Cannot edit role {role.name} (level {role.level}) "
                    f"with actor level {privileges.level}"
                ),
            )

        now = datetime.now(UTC)
        updated = await self._roles.update(replace(role, permissions=perms, updated_at=now))
        if self._cache is not None:
            await self._cache.invalidate_all()

        added = sorted(perms - role.permissions)
        removed = sorted(role.permissions - perms)
        logger.info(
            "Role permissions updated: name=%s added=%d removed=%d",
            role.name,
            len(added),
            len(removed),
        )
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.update_permissions",
                actor=actor,
                timestamp=now,
                role_id=role.role_id,
                role_name=role.name,
                detail={"added": added, "removed": removed},
            ),
        )
        return updated

    async def update_role(
        self,
        role_id: UUID,
        *,
        display_name: str | None = None,
        description: str | None = None,
        level: int | None = None,
        actor: UUID | None = None,
    ) -> Role:
        """Edit presentation fields and level of a custom role.

        Raises:
            NotFoundError: Unknown role.
            ConflictError: The role is a system role.
        """
        role = await self.get_role(role_id)
        if role.is_system:
            raise ConflictError(f"Cannot update system role {role.name}")

        changes: dict[str, object] = {}
        if display_name:
            changes["display_name"] = display_name.strip()
        if description is not None:
            changes["description"] = description
        if level is not None:
            changes["level"] = level
        if not changes:
            return role

        now = datetime.now(UTC)
        updated = await self._roles.update(replace(role, updated_at=now, **changes))  # type: ignore[arg-type]
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.update",
                actor=actor,
                timestamp=now,
                role_id=role.role_id,
                role_name=role.name,
                detail=dict(changes),
            ),
        )
        return updated

    async def set_default_role(
        self,
        role_id: UUID | None,
        *,
        actor: UUID | None = None,
    ) -> Role | None:
        """Move the default flag to ``role_id`` (None clears it).

        The store moves the flag atomically. If the target disappears
        concurrently, NotFoundError is raised and the previous default stays.
        """
        target = await self.get_role(role_id) if role_id is not None else None
        current = await self._roles.get_default()

        if current is not None and target is not None and current.role_id == target.role_id:
            return current

        now = datetime.now(UTC)
        updated = await self._roles.set_default(role_id, updated_at=now)

        if self._cache is not None:
            await self._cache.invalidate_all()
        logger.info(
            "Default role changed: %s -> %s",
            current.name if current else None,
            target.name if target else None,
        )
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.set_default",
                actor=actor,
                timestamp=now,
                role_id=target.role_id if target else None,
                role_name=target.name if target else "",
                detail={"previous": current.name if current else None},
            ),
        )
        return updated

    async def seed_defaults(self, table: SeedTable) -> list[Role]:
        """Ensure every role in the seed table exists.

        Existing roles (by name) are skipped, never overwritten. A seed role
        marked default is created non-default when the operator already
        picked another default.

        Returns:
            The stored role for every table entry, in table order.
        """
        result: list[Role] = []
        created = 0
        for seed in table.roles:
            existing = await self._roles.get_by_name(seed.name)
            if existing is not None:
                logger.info("Role %s already exists (skipping)", seed.name)
                result.append(existing)
                continue

            is_default = seed.is_default
            if is_default and await self._roles.get_default() is not None:
                logger.warning(
                    "Seed role %s marked default but a default exists; creating as non-default",
                    seed.name,
                )
                is_default = False

            role = await self.define_role(
                name=seed.name,
                display_name=seed.display_name,
                description=seed.description,
                permissions=seed.permissions,
                level=seed.level,
                is_system=True,
                is_default=is_default,
            )
            result.append(role)
            created += 1

        logger.info(
            "Seed table v%d applied: %d created, %d skipped",
            table.version,
            created,
            len(table.roles) - created,
        )
        return result

    async def delete_role(self, role_id: UUID, *, actor: UUID | None = None) -> None:
        """Hard-delete a custom role with no assignments.

        Raises:
            NotFoundError: Unknown role.
            ConflictError: System role, or the role still has assignments.
        """
        role = await self.get_role(role_id)
        if role.is_system:
            raise ConflictError(f"Cannot delete system role {role.name}")

        live = await self._assignments.list_for_role(role_id)
        if live:
            raise ConflictError(
                f"Cannot delete role {role.name} with {len(live)} active assignment(s)",
            )

        # The store re-checks atomically; a grant racing this call fails here.
        await self._roles.delete_role(role_id)
        if role.is_default and self._cache is not None:
            await self._cache.invalidate_all()

        logger.info("Role deleted: name=%s", role.name)
        await record_audit(
            self._audit,
            AuditEntry(
                action="role.delete",
                actor=actor,
                timestamp=datetime.now(UTC),
                role_id=role.role_id,
                role_name=role.name,
            ),
        )
