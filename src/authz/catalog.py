"""Permission catalog: the closed set of ``resource:action`` strings.

- 14 resources x the actions each resource supports
- Every role permission is validated against this catalog at write time
- LAW constraint: the catalog is frozen at runtime. Changes require a release
  (and usually a seed-table version bump).
"""

from __future__ import annotations

from collections.abc import Iterable  # noqa: TC003 -- used at runtime by validate_permissions
from enum import Enum, unique

from src.shared.errors import ValidationError


@unique
class Resource(Enum):
    """Resource types that carry permissions."""

    AGENTS = "agents"
    CONVERSATIONS = "conversations"
    KNOWLEDGE_BASE = "knowledge-base"
    DOCUMENTS = "documents"
    WORKFLOWS = "workflows"
    TOOLS = "tools"
    FINE_TUNING = "fine-tuning"
    DATASETS = "datasets"
    JOBS = "jobs"
    ORGANIZATIONS = "organizations"
    WORKSPACES = "workspaces"
    USERS = "users"
    SETTINGS = "settings"
    API_KEYS = "api-keys"


@unique
class Action(Enum):
    """Actions that can be performed on resources."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"
    EXECUTE = "execute"
    DEPLOY = "deploy"
    SHARE = "share"


_CRUD = (Action.CREATE, Action.READ, Action.UPDATE, Action.DELETE)

_RESOURCE_ACTIONS: dict[Resource, tuple[Action, ...]] = {
    Resource.ORGANIZATIONS: (Action.MANAGE, Action.READ, Action.UPDATE, Action.DELETE),
    Resource.WORKSPACES: (Action.MANAGE, *_CRUD),
    Resource.USERS: (Action.MANAGE, *_CRUD),
    Resource.SETTINGS: (Action.MANAGE, Action.READ, Action.UPDATE),
    Resource.API_KEYS: (Action.MANAGE, Action.CREATE, Action.READ, Action.DELETE),
    Resource.AGENTS: (*_CRUD, Action.DEPLOY, Action.SHARE),
    Resource.CONVERSATIONS: _CRUD,
    Resource.KNOWLEDGE_BASE: _CRUD,
    Resource.DOCUMENTS: _CRUD,
    Resource.WORKFLOWS: (*_CRUD, Action.EXECUTE, Action.DEPLOY),
    Resource.TOOLS: (*_CRUD, Action.EXECUTE),
    Resource.FINE_TUNING: _CRUD,
    Resource.DATASETS: _CRUD,
    Resource.JOBS: _CRUD,
}


def make_permission(resource: Resource, action: Action) -> str:
    """Build the ``resource:action`` string."""
    return f"{resource.value}:{action.value}"


PERMISSION_CATALOG: frozenset[str] = frozenset(
    make_permission(resource, action)
    for resource, actions in _RESOURCE_ACTIONS.items()
    for action in actions
)


def is_known_permission(permission: str) -> bool:
    return permission in PERMISSION_CATALOG


def validate_permissions(permissions: Iterable[str]) -> frozenset[str]:
    """Validate every permission against the catalog.

    Returns:
        The de-duplicated permission set.

    Raises:
        ValidationError: Listing every unknown permission string.
    """
    perms = frozenset(permissions)
    unknown = sorted(p for p in perms if not is_known_permission(p))
    if unknown:
        raise ValidationError(
            f"Unknown permission(s): {', '.join(unknown)}",
            field="permissions",
        )
    return perms
