"""PostgreSQL adapter implementing AssignmentStore via SQLAlchemy.

grant atomicity: INSERT ... ON CONFLICT DO NOTHING against
uq_role_assignments_user_role_scope. Two concurrent grants of the same
tuple produce exactly one row; the loser reads the winner's row back.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError

from src.infra.models import GLOBAL_SCOPE_KEY, RoleAssignmentModel
from src.ports.assignment_store import AssignmentStore
from src.shared.errors import NotFoundError
from src.shared.types import Assignment

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def to_scope_key(scope_id: UUID | None) -> UUID:
    return GLOBAL_SCOPE_KEY if scope_id is None else scope_id


def from_scope_key(scope_key: UUID) -> UUID | None:
    return None if scope_key == GLOBAL_SCOPE_KEY else scope_key


class PgAssignmentStore(AssignmentStore):
    """PostgreSQL-backed role assignments."""

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def insert_if_absent(self, assignment: Assignment) -> tuple[Assignment, bool]:
        scope_key = to_scope_key(assignment.scope_id)
        stmt = (
            pg_insert(RoleAssignmentModel)
            .values(
                id=assignment.assignment_id,
                user_id=assignment.user_id,
                role_id=assignment.role_id,
                scope_id=scope_key,
                granted_by=assignment.granted_by,
                granted_at=assignment.granted_at,
                expires_at=assignment.expires_at,
            )
            .on_conflict_do_nothing(constraint="uq_role_assignments_user_role_scope")
            .returning(RoleAssignmentModel.id)
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                inserted_id = result.scalar_one_or_none()
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise NotFoundError("Role", str(assignment.role_id)) from exc

            if inserted_id is not None:
                return assignment, True

            existing_stmt = sa.select(RoleAssignmentModel).where(
                RoleAssignmentModel.user_id == assignment.user_id,
                RoleAssignmentModel.role_id == assignment.role_id,
                RoleAssignmentModel.scope_id == scope_key,
            )
            rows = (await session.scalars(existing_stmt)).all()

        if not rows:
            # Conflicting row was revoked between our insert and read-back.
            logger.warning(
                "Assignment vanished during grant: user=%s role=%s",
                assignment.user_id,
                assignment.role_id,
            )
            return assignment, False
        return _row_to_assignment(rows[0]), False

    async def delete_assignment(
        self,
        user_id: UUID,
        role_id: UUID,
        scope_id: UUID | None,
    ) -> bool:
        stmt = sa.delete(RoleAssignmentModel).where(
            RoleAssignmentModel.user_id == user_id,
            RoleAssignmentModel.role_id == role_id,
            RoleAssignmentModel.scope_id == to_scope_key(scope_id),
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            await session.commit()
        return result.rowcount > 0

    async def list_for_user(self, user_id: UUID) -> list[Assignment]:
        stmt = (
            sa.select(RoleAssignmentModel)
            .where(RoleAssignmentModel.user_id == user_id)
            .order_by(RoleAssignmentModel.granted_at)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return [_row_to_assignment(row) for row in rows]

    async def list_for_role(self, role_id: UUID) -> list[Assignment]:
        stmt = (
            sa.select(RoleAssignmentModel)
            .where(RoleAssignmentModel.role_id == role_id)
            .order_by(RoleAssignmentModel.granted_at)
        )
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return [_row_to_assignment(row) for row in rows]


def _row_to_assignment(row: RoleAssignmentModel) -> Assignment:
    """Convert an ORM row to a domain Assignment."""
    return Assignment(
        assignment_id=row.id,
        user_id=row.user_id,
        role_id=row.role_id,
        scope_id=from_scope_key(row.scope_id),
        granted_by=row.granted_by,
        granted_at=row.granted_at,
        expires_at=row.expires_at,
    )
