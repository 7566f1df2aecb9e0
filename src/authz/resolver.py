"""Permission Resolver: a user's effective permission set in a scope.

Resolution rule (the only implementation; Diagnostics replays it):
  1. Load every assignment of the user.
  2. Applicable = global (scope None) or exactly the requested scope,
     minus expired assignments.
  3. Effective = union of the applicable roles' permission sets
     (additive; never an intersection, never level-inherited).
  4. If NO assignment applies at all and a default role exists, the
     default role's permissions are used instead. An applicable role with
     an empty permission set does NOT trigger the fallback.

resolve() is the authorization hot path; results are served from the
injected ResolutionCache when one is configured.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from src.shared.types import ActorPrivileges

if TYPE_CHECKING:
    from collections.abc import Callable
    from uuid import UUID

    from src.authz.cache import ResolutionCache
    from src.ports.assignment_store import AssignmentStore
    from src.ports.role_store import RoleStore
    from src.shared.types import Assignment, Role

logger = logging.getLogger(__name__)


class FindingStatus(Enum):
    """Why an assignment did or did not take part in a resolution."""

    APPLIED = "applied"
    OUT_OF_SCOPE = "out_of_scope"
    EXPIRED = "expired"
    ROLE_MISSING = "role_missing"


@dataclass(frozen=True)
class AssignmentFinding:
    """One assignment as seen by a single resolution."""

    assignment: Assignment
    status: FindingStatus
    role: Role | None = None
    contributed: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ResolutionTrace:
    """Every intermediate step of one resolution, in evaluation order."""

    user_id: UUID
    scope_id: UUID | None
    evaluated_at: datetime
    findings: tuple[AssignmentFinding, ...]
    default_role: Role | None
    fallback_applied: bool
    fallback_reason: str
    permissions: frozenset[str]

    @property
    def applied_roles(self) -> tuple[Role, ...]:
        """Distinct roles that fed the union (the default role on fallback)."""
        if self.fallback_applied and self.default_role is not None:
            return (self.default_role,)
        seen: dict[UUID, Role] = {}
        for f in self.findings:
            if f.status is FindingStatus.APPLIED and f.role is not None:
                seen.setdefault(f.role.role_id, f.role)
        return tuple(seen.values())


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _classify(assignment: Assignment, scope_id: UUID | None, now: datetime) -> FindingStatus:
    if assignment.scope_id is not None and assignment.scope_id != scope_id:
        return FindingStatus.OUT_OF_SCOPE
    if assignment.is_expired(now):
        return FindingStatus.EXPIRED
    return FindingStatus.APPLIED


class PermissionResolver:
    """Computes effective permissions from the Role and Assignment stores."""

    def __init__(
        self,
        *,
        roles: RoleStore,
        assignments: AssignmentStore,
        cache: ResolutionCache | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._roles = roles
        self._assignments = assignments
        self._cache = cache
        self._clock = clock

    async def trace(self, user_id: UUID, scope_id: UUID | None) -> ResolutionTrace:
        """Run the resolution and keep every intermediate step. Never cached."""
        now = self._clock()
        assignments = await self._assignments.list_for_user(user_id)
        roles_by_id = {
            r.role_id: r for r in await self._roles.get_many(a.role_id for a in assignments)
        }

        findings: list[AssignmentFinding] = []
        effective: set[str] = set()
        applicable = 0
        for assignment in assignments:
            status = _classify(assignment, scope_id, now)
            role = roles_by_id.get(assignment.role_id)
            if status is not FindingStatus.APPLIED:
                findings.append(AssignmentFinding(assignment, status, role))
                continue

            applicable += 1
            if role is None:
                findings.append(AssignmentFinding(assignment, FindingStatus.ROLE_MISSING))
                continue
            contributed = frozenset(role.permissions - effective)
            effective |= role.permissions
            findings.append(AssignmentFinding(assignment, status, role, contributed))

        default_role = await self._roles.get_default()
        fallback_applied = False
        if applicable:
            reason = f"{applicable} applicable assignment(s); default role not consulted"
        elif default_role is None:
            reason = "no applicable assignment and no default role configured"
        else:
            fallback_applied = True
            effective = set(default_role.permissions)
            reason = f"no applicable assignment; fell back to default role {default_role.name}"

        return ResolutionTrace(
            user_id=user_id,
            scope_id=scope_id,
            evaluated_at=now,
            findings=tuple(findings),
            default_role=default_role,
            fallback_applied=fallback_applied,
            fallback_reason=reason,
            permissions=frozenset(effective),
        )

    async def resolve(self, user_id: UUID, scope_id: UUID | None) -> frozenset[str]:
        """Effective, de-duplicated permission set of a user in a scope."""
        if self._cache is None:
            return (await self.trace(user_id, scope_id)).permissions

        cached = await self._cache.get(user_id, scope_id)
        if cached is not None:
            return cached

        # Generation is read before the stores so a concurrent revoke wins.
        generation = await self._cache.generation(user_id)
        permissions = (await self.trace(user_id, scope_id)).permissions
        await self._cache.put(user_id, scope_id, permissions, generation=generation)
        return permissions

    async def has_permission(
        self,
        user_id: UUID,
        scope_id: UUID | None,
        permission: str,
    ) -> bool:
        allowed = permission in await self.resolve(user_id, scope_id)
        if not allowed:
            logger.debug(
                "Permission denied: user=%s scope=%s permission=%s",
                user_id,
                scope_id,
                permission,
            )
        return allowed

    async def has_role(self, user_id: UUID, scope_id: UUID | None, role_name: str) -> bool:
        """True if the user holds the named role in the scope, directly or
        via the default-role fallback."""
        key = role_name.strip().lower()
        trace = await self.trace(user_id, scope_id)
        return any(r.name == key for r in trace.applied_roles)

    async def actor_privileges(self, user_id: UUID, scope_id: UUID | None) -> ActorPrivileges:
        """Level and permissions the user holds through applicable assignments.

        Used for administrative checks. The default-role fallback is ignored,
        so an unassigned scope never lends a user the default role's standing.
        """
        trace = await self.trace(user_id, scope_id)
        held = [
            f.role
            for f in trace.findings
            if f.status is FindingStatus.APPLIED and f.role is not None
        ]
        return ActorPrivileges(
            level=max((r.level for r in held), default=0),
            permissions=frozenset().union(*(r.permissions for r in held)),
        )

    async def effective_level(self, user_id: UUID, scope_id: UUID | None) -> int:
        """Highest level among the user's applicable assignments (0 if none)."""
        return (await self.actor_privileges(user_id, scope_id)).level
