"""In-memory implementation of RoleStore + AssignmentStore.

Day-1 adapter, also used by tests and by the CLI with RBAC_STORE=memory.
One object implements both ports so that the delete-role guard and the
grant path share a single lock: a grant racing a delete either lands
before the delete (and the delete fails) or after it (and the grant fails
with NotFoundError). Nothing is ever left dangling.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import TYPE_CHECKING

from src.ports.assignment_store import AssignmentStore
from src.ports.role_store import RoleStore
from src.shared.errors import ConflictError, InvariantError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from src.shared.types import Assignment, Role


def _sort_key(role: Role) -> tuple[int, str]:
    return (-role.level, role.name)


class InMemoryRbacStore(RoleStore, AssignmentStore):
    """Process-local role and assignment tables.

    Not shared across processes; production uses the Pg* adapters.
    """

    def __init__(self) -> None:
        self._roles: dict[UUID, Role] = {}
        self._assignments: dict[tuple[UUID, UUID, UUID | None], Assignment] = {}
        self._lock = asyncio.Lock()

    # -- RoleStore --

    async def add(self, role: Role) -> Role:
        async with self._lock:
            name = role.name.lower()
            if any(r.name == name for r in self._roles.values()):
                raise ValidationError(f"Role name already exists: {name}", field="name")
            if role.is_default:
                self._check_no_other_default(role.role_id)
            stored = replace(role, name=name)
            self._roles[stored.role_id] = stored
            return stored

    async def get(self, role_id: UUID) -> Role | None:
        return self._roles.get(role_id)

    async def get_by_name(self, name: str) -> Role | None:
        key = name.strip().lower()
        for role in self._roles.values():
            if role.name == key:
                return role
        return None

    async def get_many(self, role_ids: Iterable[UUID]) -> list[Role]:
        seen: set[UUID] = set()
        roles: list[Role] = []
        for role_id in role_ids:
            if role_id in seen:
                continue
            seen.add(role_id)
            role = self._roles.get(role_id)
            if role is not None:
                roles.append(role)
        return roles

    async def get_default(self) -> Role | None:
        for role in self._roles.values():
            if role.is_default:
                return role
        return None

    async def list_all(self) -> list[Role]:
        return sorted(self._roles.values(), key=_sort_key)

    async def update(self, role: Role) -> Role:
        async with self._lock:
            existing = self._roles.get(role.role_id)
            if existing is None:
                raise NotFoundError("Role", str(role.role_id))
            if role.is_default:
                self._check_no_other_default(role.role_id)
            stored = replace(role, name=existing.name)
            self._roles[role.role_id] = stored
            return stored

    async def set_default(self, role_id: UUID | None, *, updated_at: datetime) -> Role | None:
        async with self._lock:
            if role_id is not None and role_id not in self._roles:
                raise NotFoundError("Role", str(role_id))
            for other in list(self._roles.values()):
                if other.is_default and other.role_id != role_id:
                    self._roles[other.role_id] = replace(
                        other,
                        is_default=False,
                        updated_at=updated_at,
                    )
            if role_id is None:
                return None
            stored = replace(self._roles[role_id], is_default=True, updated_at=updated_at)
            self._roles[role_id] = stored
            return stored

    async def delete_role(self, role_id: UUID) -> None:
        async with self._lock:
            role = self._roles.get(role_id)
            if role is None:
                raise NotFoundError("Role", str(role_id))
            live = sum(1 for a in self._assignments.values() if a.role_id == role_id)
            if live:
                raise ConflictError(
                    f"Cannot delete role {role.name} with {live} active assignment(s)",
                )
            del self._roles[role_id]

    def _check_no_other_default(self, role_id: UUID) -> None:
        for other in self._roles.values():
            if other.is_default and other.role_id != role_id:
                raise InvariantError(
                    "single_default_role",
                    f"Role {other.name} is already the default role",
                )

    # -- AssignmentStore --

    async def insert_if_absent(self, assignment: Assignment) -> tuple[Assignment, bool]:
        async with self._lock:
            if assignment.role_id not in self._roles:
                raise NotFoundError("Role", str(assignment.role_id))
            existing = self._assignments.get(assignment.key)
            if existing is not None:
                return existing, False
            self._assignments[assignment.key] = assignment
            return assignment, True

    async def delete_assignment(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_id: UUID | None,
    ) -> bool:
        async with self._lock:
            return self._assignments.pop((user_id, role_id, scope_id), None) is not None

    async def list_for_user(self, user_id: UUID) -> list[Assignment]:
        rows = [a for a in self._assignments.values() if a.user_id == user_id]
        return sorted(rows, key=lambda a: a.granted_at)

    async def list_for_role(self, role_id: UUID) -> list[Assignment]:
        rows = [a for a in self._assignments.values() if a.role_id == role_id]
        return sorted(rows, key=lambda a: a.granted_at)
