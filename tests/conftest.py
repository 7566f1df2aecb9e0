"""Root conftest - shared fixtures for all test layers.

Markers:
    @pytest.mark.unit        - No external deps (in-memory stores, fake sessions)
    @pytest.mark.integration - Needs running PostgreSQL / Redis
"""

from __future__ import annotations

from uuid import UUID, uuid4

import pytest

from src.authz.assignments import AssignmentManager
from src.authz.cache import ResolutionCache
from src.authz.resolver import PermissionResolver
from src.authz.roles import RoleAdministration
from src.authz.seed import load_seed_table
from src.infra.audit.memory import InMemoryAuditLog
from src.infra.auth.memory_store import InMemoryRbacStore
from src.infra.cache.memory import InMemoryStorageAdapter
from src.shared.types import Role


@pytest.fixture
def sample_user_id() -> UUID:
    return uuid4()


@pytest.fixture
def sample_org_id() -> UUID:
    return uuid4()


@pytest.fixture
def store() -> InMemoryRbacStore:
    return InMemoryRbacStore()


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def storage() -> InMemoryStorageAdapter:
    return InMemoryStorageAdapter()


@pytest.fixture
def cache(storage: InMemoryStorageAdapter) -> ResolutionCache:
    return ResolutionCache(storage, ttl_seconds=5)


@pytest.fixture
def role_admin(
    store: InMemoryRbacStore,
    audit_log: InMemoryAuditLog,
    cache: ResolutionCache,
) -> RoleAdministration:
    return RoleAdministration(roles=store, assignments=store, audit=audit_log, cache=cache)


@pytest.fixture
def assignment_manager(
    store: InMemoryRbacStore,
    audit_log: InMemoryAuditLog,
    cache: ResolutionCache,
) -> AssignmentManager:
    return AssignmentManager(roles=store, assignments=store, audit=audit_log, cache=cache)


@pytest.fixture
def resolver(store: InMemoryRbacStore, cache: ResolutionCache) -> PermissionResolver:
    return PermissionResolver(roles=store, assignments=store, cache=cache)


@pytest.fixture
async def seeded(role_admin: RoleAdministration) -> dict[str, Role]:
    """Canonical roles (owner/admin/member/viewer) keyed by name."""
    roles = await role_admin.seed_defaults(load_seed_table())
    return {r.name: r for r in roles}
