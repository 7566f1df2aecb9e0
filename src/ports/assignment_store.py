"""AssignmentStore - Durable (user, role, scope) bindings.

Hard dependency of the Assignment Manager and the Permission Resolver.
Day-1 implementation: InMemoryRbacStore (src/infra/auth/memory_store.py).
Real implementation: PgAssignmentStore (upsert-on-conflict).

The (user_id, role_id, scope_id) tuple is unique; scope_id=None is the
global scope and participates in uniqueness like any other scope.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from src.shared.types import Assignment


class AssignmentStore(ABC):
    """Port: Role assignment persistence."""

    @abstractmethod
    async def insert_if_absent(self, assignment: Assignment) -> tuple[Assignment, bool]:
        """Atomically insert unless the (user, role, scope) tuple exists.

        Returns:
            (stored assignment, created). When the tuple already exists the
            existing record is returned with created=False.

        Raises:
            NotFoundError: If assignment.role_id references no role.
        """

    @abstractmethod
    async def delete_assignment(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_id: UUID | None,
    ) -> bool:
        """Hard-delete the assignment. Returns False if it was absent."""

    @abstractmethod
    async def list_for_user(self, user_id: UUID) -> list[Assignment]:
        """All assignments for a user across every scope, oldest first."""

    @abstractmethod
    async def list_for_role(self, role_id: UUID) -> list[Assignment]:
        """All assignments referencing a role, oldest first."""
