"""PostgreSQL adapter implementing RoleStore via SQLAlchemy.

Invariants are enforced by the schema, not by read-then-write checks:
  - uq_roles_name              -> ValidationError (name taken)
  - uq_roles_single_default    -> InvariantError (second default role);
    set_default() clears and sets the flag in one transaction
  - role_assignments.role_id FK ON DELETE RESTRICT -> ConflictError on delete
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError

from src.infra.models import RoleModel
from src.ports.role_store import RoleStore
from src.shared.errors import ConflictError, InvariantError, NotFoundError, ValidationError
from src.shared.types import Role

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


def violated_constraint(exc: IntegrityError, name: str) -> bool:
    """True if the IntegrityError was raised by the named constraint/index."""
    return name in str(exc.orig)


class PgRoleStore(RoleStore):
    """PostgreSQL-backed role definitions."""

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def add(self, role: Role) -> Role:
        model = RoleModel(
            id=role.role_id,
            name=role.name.lower(),
            display_name=role.display_name,
            description=role.description,
            permissions=sorted(role.permissions),
            level=role.level,
            is_system=role.is_system,
            is_default=role.is_default,
            created_at=role.created_at,
            updated_at=role.updated_at or role.created_at,
        )
        async with self._session_factory() as session:
            session.add(model)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                _raise_role_conflict(exc, role)
                raise
        return _row_to_role(model)

    async def get(self, role_id: UUID) -> Role | None:
        stmt = sa.select(RoleModel).where(RoleModel.id == role_id)
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return _row_to_role(rows[0]) if rows else None

    async def get_by_name(self, name: str) -> Role | None:
        stmt = sa.select(RoleModel).where(RoleModel.name == name.strip().lower())
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return _row_to_role(rows[0]) if rows else None

    async def get_many(self, role_ids: Iterable[UUID]) -> list[Role]:
        ids = list(dict.fromkeys(role_ids))
        if not ids:
            return []
        stmt = sa.select(RoleModel).where(RoleModel.id.in_(ids))
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows_by_id = {row.id: row for row in result.all()}
        return [_row_to_role(rows_by_id[rid]) for rid in ids if rid in rows_by_id]

    async def get_default(self) -> Role | None:
        stmt = sa.select(RoleModel).where(RoleModel.is_default.is_(True))
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return _row_to_role(rows[0]) if rows else None

    async def list_all(self) -> list[Role]:
        stmt = sa.select(RoleModel).order_by(RoleModel.level.desc(), RoleModel.name)
        async with self._session_factory() as session:
            result = await session.scalars(stmt)
            rows = result.all()
        return [_row_to_role(row) for row in rows]

    async def update(self, role: Role) -> Role:
        stmt = (
            sa.update(RoleModel)
            .where(RoleModel.id == role.role_id)
            .values(
                display_name=role.display_name,
                description=role.description,
                permissions=sorted(role.permissions),
                level=role.level,
                is_default=role.is_default,
                updated_at=role.updated_at,
            )
        )
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    raise NotFoundError("Role", str(role.role_id))
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                _raise_role_conflict(exc, role)
                raise
        return role

    async def set_default(self, role_id: UUID | None, *, updated_at: datetime) -> Role | None:
        clear = (
            sa.update(RoleModel)
            .where(RoleModel.is_default.is_(True))
            .values(is_default=False, updated_at=updated_at)
        )
        async with self._session_factory() as session:
            await session.execute(clear)
            if role_id is None:
                await session.commit()
                return None

            result = await session.execute(
                sa.update(RoleModel)
                .where(RoleModel.id == role_id)
                .values(is_default=True, updated_at=updated_at),
            )
            if result.rowcount == 0:
                await session.rollback()
                raise NotFoundError("Role", str(role_id))
            rows = (
                await session.scalars(sa.select(RoleModel).where(RoleModel.id == role_id))
            ).all()
            await session.commit()
        return _row_to_role(rows[0])

    async def delete_role(self, role_id: UUID) -> None:
        stmt = sa.delete(RoleModel).where(RoleModel.id == role_id)
        async with self._session_factory() as session:
            try:
                result = await session.execute(stmt)
                if result.rowcount == 0:
                    raise NotFoundError("Role", str(role_id))
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                logger.info("Role delete rejected by FK: role_id=%s", role_id)
                raise ConflictError(
                    f"Cannot delete role {role_id}: it still has active assignments",
                ) from exc


def _raise_role_conflict(exc: IntegrityError, role: Role) -> None:
    if violated_constraint(exc, "uq_roles_name"):
        raise ValidationError(f"Role name already exists: {role.name}", field="name") from exc
    if violated_constraint(exc, "uq_roles_single_default"):
        raise InvariantError(
            "single_default_role",
            "Another role is already the default role",
        ) from exc


def _row_to_role(row: RoleModel) -> Role:
    """Convert an ORM row to a domain Role."""
    return Role(
        role_id=row.id,
        name=row.name,
        display_name=row.display_name,
        description=row.description or "",
        level=row.level,
        permissions=frozenset(row.permissions or []),
        is_system=row.is_system,
        is_default=row.is_default,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
