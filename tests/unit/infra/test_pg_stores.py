"""PgRoleStore / PgAssignmentStore unit tests using Fake session adapters.

Validates row conversion, the global-scope key mapping and the mapping of
constraint violations onto domain errors. No database required.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import IntegrityError

from src.infra.auth.pg_assignment_store import (
    PgAssignmentStore,
    from_scope_key,
    to_scope_key,
)
from src.infra.auth.pg_role_store import PgRoleStore
from src.infra.models import GLOBAL_SCOPE_KEY, RoleModel
from src.shared.errors import ConflictError, InvariantError, NotFoundError, ValidationError
from src.shared.types import Assignment, Role
from tests.fakes import FakeAsyncSession, FakeOrmRow, FakeResult, FakeSessionFactory

if TYPE_CHECKING:
    from uuid import UUID

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _integrity_error(constraint: str) -> IntegrityError:
    orig = Exception(f'duplicate key value violates unique constraint "{constraint}"')
    return IntegrityError("INSERT INTO roles ...", {}, orig)


def _role(**overrides: object) -> Role:
    data: dict[str, object] = {
        "role_id": uuid4(),
        "name": "support",
        "display_name": "Support",
        "level": 30,
        "permissions": frozenset({"agents:read", "conversations:read"}),
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return Role(**data)  # type: ignore[arg-type]


def _role_row(**overrides: object) -> FakeOrmRow:
    data: dict[str, object] = {
        "id": uuid4(),
        "name": "viewer",
        "display_name": "Viewer",
        "description": None,
        "level": 20,
        "permissions": ["jobs:read", "agents:read"],
        "is_system": True,
        "is_default": False,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return FakeOrmRow(**data)


def _assignment_row(**overrides: object) -> FakeOrmRow:
    data: dict[str, object] = {
        "id": uuid4(),
        "user_id": uuid4(),
        "role_id": uuid4(),
        "scope_id": GLOBAL_SCOPE_KEY,
        "granted_by": None,
        "granted_at": NOW,
        "expires_at": None,
    }
    data.update(overrides)
    return FakeOrmRow(**data)


def _sql(statement: object) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))  # type: ignore[attr-defined]


@pytest.fixture
def session() -> FakeAsyncSession:
    return FakeAsyncSession()


@pytest.fixture
def role_store(session: FakeAsyncSession) -> PgRoleStore:
    return PgRoleStore(session_factory=FakeSessionFactory(session))  # type: ignore[arg-type]


@pytest.fixture
def assignment_store(session: FakeAsyncSession) -> PgAssignmentStore:
    return PgAssignmentStore(session_factory=FakeSessionFactory(session))  # type: ignore[arg-type]


@pytest.mark.unit
class TestScopeKey:
    def test_global_maps_to_nil_uuid(self) -> None:
        assert to_scope_key(None) == GLOBAL_SCOPE_KEY
        assert from_scope_key(GLOBAL_SCOPE_KEY) is None

    def test_scoped_passthrough(self) -> None:
        scope = uuid4()
        assert to_scope_key(scope) == scope
        assert from_scope_key(scope) == scope


@pytest.mark.unit
@pytest.mark.asyncio
class TestPgRoleStore:
    async def test_add_persists_model(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        role = _role(name="Support")
        stored = await role_store.add(role)

        [model] = session.added
        assert isinstance(model, RoleModel)
        assert model.name == "support"
        assert model.permissions == ["agents:read", "conversations:read"]
        assert session.committed
        assert stored.name == "support"
        assert stored.permissions == role.permissions

    async def test_add_duplicate_name(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.commit_error = _integrity_error("uq_roles_name")
        with pytest.raises(ValidationError) as exc_info:
            await role_store.add(_role())
        assert exc_info.value.field == "name"
        assert session.rolled_back

    async def test_add_second_default(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.commit_error = _integrity_error("uq_roles_single_default")
        with pytest.raises(InvariantError) as exc_info:
            await role_store.add(_role(is_default=True))
        assert exc_info.value.invariant == "single_default_role"

    async def test_add_other_integrity_error_propagates(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.commit_error = _integrity_error("some_check")
        with pytest.raises(IntegrityError):
            await role_store.add(_role())

    async def test_get_converts_row(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        row = _role_row()
        session.set_scalars_result([row])
        role = await role_store.get(row.id)
        assert role is not None
        assert role.role_id == row.id
        assert role.permissions == frozenset({"jobs:read", "agents:read"})
        assert role.description == ""
        assert role.is_system

    async def test_get_missing(self, role_store: PgRoleStore) -> None:
        assert await role_store.get(uuid4()) is None
        assert await role_store.get_by_name("ghost") is None
        assert await role_store.get_default() is None

    async def test_get_by_name_normalizes(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.set_scalars_result([_role_row()])
        await role_store.get_by_name("  VIEWER ")
        assert "'viewer'" in str(
            session.scalars_calls[0].compile(
                dialect=postgresql.dialect(),
                compile_kwargs={"literal_binds": True},
            ),
        )

    async def test_get_many_preserves_request_order(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        a, b = _role_row(name="a"), _role_row(name="b")
        session.set_scalars_result([a, b])
        roles = await role_store.get_many([b.id, a.id, b.id, uuid4()])
        assert [r.name for r in roles] == ["b", "a"]

    async def test_get_many_empty_skips_query(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        assert await role_store.get_many([]) == []
        assert session.scalars_calls == []

    async def test_list_all(self, role_store: PgRoleStore, session: FakeAsyncSession) -> None:
        session.set_scalars_result([_role_row(name="owner", level=100), _role_row()])
        assert [r.name for r in await role_store.list_all()] == ["owner", "viewer"]
        assert "ORDER BY roles.level DESC" in _sql(session.scalars_calls[0])

    async def test_update(self, role_store: PgRoleStore, session: FakeAsyncSession) -> None:
        session.set_execute_result(rowcount=1)
        role = _role()
        assert await role_store.update(role) == role
        assert session.committed

    async def test_update_missing(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.set_execute_result(rowcount=0)
        with pytest.raises(NotFoundError):
            await role_store.update(_role())
        assert not session.committed

    async def test_set_default_one_transaction(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        row = _role_row(is_default=True)
        session.set_execute_results([FakeResult(rowcount=1), FakeResult(rowcount=1)])
        session.set_scalars_result([row])

        role = await role_store.set_default(row.id, updated_at=NOW)

        assert role is not None
        assert role.is_default
        clear_sql, set_sql = (_sql(stmt) for stmt, _ in session.execute_calls)
        assert "WHERE roles.is_default IS" in clear_sql
        assert "WHERE roles.id =" in set_sql
        assert session.commit_count == 1

    async def test_set_default_clear(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        assert await role_store.set_default(None, updated_at=NOW) is None
        assert len(session.execute_calls) == 1
        assert session.commit_count == 1

    async def test_set_default_missing_rolls_back(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.set_execute_results([FakeResult(rowcount=1), FakeResult(rowcount=0)])
        with pytest.raises(NotFoundError):
            await role_store.set_default(uuid4(), updated_at=NOW)
        assert session.rolled_back
        assert not session.committed

    async def test_delete(self, role_store: PgRoleStore, session: FakeAsyncSession) -> None:
        session.set_execute_result(rowcount=1)
        await role_store.delete_role(uuid4())
        assert session.committed

    async def test_delete_missing(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.set_execute_result(rowcount=0)
        with pytest.raises(NotFoundError):
            await role_store.delete_role(uuid4())

    async def test_delete_blocked_by_fk(
        self,
        role_store: PgRoleStore,
        session: FakeAsyncSession,
    ) -> None:
        session.execute_error = IntegrityError(
            "DELETE FROM roles ...",
            {},
            Exception("violates foreign key constraint on table role_assignments"),
        )
        with pytest.raises(ConflictError, match="active assignments"):
            await role_store.delete_role(uuid4())
        assert session.rolled_back


def _assignment(scope_id: UUID | None = None) -> Assignment:
    return Assignment(
        assignment_id=uuid4(),
        user_id=uuid4(),
        role_id=uuid4(),
        scope_id=scope_id,
        granted_by=uuid4(),
        granted_at=NOW,
    )


@pytest.mark.unit
@pytest.mark.asyncio
class TestPgAssignmentStore:
    async def test_insert_created(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        a = _assignment()
        session.set_execute_result(scalar_one_or_none_value=a.assignment_id)
        stored, created = await assignment_store.insert_if_absent(a)
        assert created
        assert stored == a
        assert session.committed

        statement, _ = session.execute_calls[0]
        sql = _sql(statement)
        assert "ON CONFLICT ON CONSTRAINT uq_role_assignments_user_role_scope DO NOTHING" in sql
        assert "RETURNING" in sql

    async def test_insert_existing_reads_back(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        a = _assignment(scope_id=uuid4())
        row = _assignment_row(user_id=a.user_id, role_id=a.role_id, scope_id=a.scope_id)
        session.set_execute_result(scalar_one_or_none_value=None)
        session.set_scalars_result([row])

        stored, created = await assignment_store.insert_if_absent(a)
        assert not created
        assert stored.assignment_id == row.id
        assert stored.scope_id == a.scope_id

    async def test_insert_unknown_role(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        session.execute_error = IntegrityError(
            "INSERT INTO role_assignments ...",
            {},
            Exception("violates foreign key constraint"),
        )
        with pytest.raises(NotFoundError):
            await assignment_store.insert_if_absent(_assignment())
        assert session.rolled_back

    async def test_delete_assignment(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        session.set_execute_result(rowcount=1)
        assert await assignment_store.delete_assignment(uuid4(), uuid4(), None)

        session.set_execute_result(rowcount=0)
        assert not await assignment_store.delete_assignment(uuid4(), uuid4(), uuid4())

    async def test_list_for_user_maps_global_scope(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        scope = uuid4()
        session.set_scalars_result([_assignment_row(), _assignment_row(scope_id=scope)])
        rows = await assignment_store.list_for_user(uuid4())
        assert [r.scope_id for r in rows] == [None, scope]

    async def test_list_for_role(
        self,
        assignment_store: PgAssignmentStore,
        session: FakeAsyncSession,
    ) -> None:
        expires = datetime(2027, 1, 1, tzinfo=UTC)
        session.set_scalars_result([_assignment_row(expires_at=expires)])
        [row] = await assignment_store.list_for_role(uuid4())
        assert row.expires_at == expires
