"""RoleStore - Durable role definitions.

Hard dependency of Role Administration and the Permission Resolver.
Day-1 implementation: InMemoryRbacStore (src/infra/auth/memory_store.py).
Real implementation: PgRoleStore (PostgreSQL via SQLAlchemy).

Store-level guarantees (adapters MUST enforce them atomically):
  - role names are unique (compared lower-cased)
  - at most one role has is_default=True; a failed move leaves the
    previous default in place
  - a role referenced by any assignment cannot be deleted
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from src.shared.types import Role


class RoleStore(ABC):
    """Port: Role definition persistence."""

    @abstractmethod
    async def add(self, role: Role) -> Role:
        """Persist a new role.

        Raises:
            ValidationError: If the name is already taken.
            InvariantError: If role.is_default and another default exists.
        """

    @abstractmethod
    async def get(self, role_id: UUID) -> Role | None:
        """Fetch a role by id, None if absent."""

    @abstractmethod
    async def get_by_name(self, name: str) -> Role | None:
        """Fetch a role by case-insensitive name, None if absent."""

    @abstractmethod
    async def get_many(self, role_ids: Iterable[UUID]) -> list[Role]:
        """Fetch the distinct roles for the given ids (missing ids are skipped)."""

    @abstractmethod
    async def get_default(self) -> Role | None:
        """Return the role flagged is_default, if any."""

    @abstractmethod
    async def list_all(self) -> list[Role]:
        """All roles ordered by level descending, then name."""

    @abstractmethod
    async def update(self, role: Role) -> Role:
        """Overwrite the mutable fields of an existing role.

        Raises:
            NotFoundError: If the role does not exist.
            InvariantError: If the update would create a second default role.
        """

    @abstractmethod
    async def set_default(self, role_id: UUID | None, *, updated_at: datetime) -> Role | None:
        """Move the default flag to ``role_id`` in one atomic step (None clears it).

        Returns:
            The new default role, or None when cleared.

        Raises:
            NotFoundError: If role_id does not exist; the previous default
                is left untouched.
        """

    @abstractmethod
    async def delete_role(self, role_id: UUID) -> None:
        """Hard-delete a role.

        Raises:
            NotFoundError: If the role does not exist.
            ConflictError: If any assignment still references the role.
        """
