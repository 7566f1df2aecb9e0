#!/usr/bin/env python3
"""RBAC administration CLI.

Every subcommand goes through the engine services (RoleAdministration,
AssignmentManager, PermissionResolver); nothing here queries the tables
directly, so the CLI can never disagree with the running application.

Usage:
    uv run python scripts/rbac_admin.py seed
    uv run python scripts/rbac_admin.py roles
    uv run python scripts/rbac_admin.py define-role support --level 30 \
        --permissions agents:read,conversations:read
    uv run python scripts/rbac_admin.py grant <user-uuid> owner
    uv run python scripts/rbac_admin.py grant <user-uuid> admin --scope <org-uuid>
    uv run python scripts/rbac_admin.py revoke <user-uuid> admin --scope <org-uuid>
    uv run python scripts/rbac_admin.py explain <user-uuid> --scope <org-uuid> \
        --permission agents:read
    uv run python scripts/rbac_admin.py check <user-uuid> agents:read --scope <org-uuid>

Role names are case-insensitive. Omitting --scope means the global scope.
Configuration comes from the environment (DATABASE_URL, REDIS_URL,
RBAC_STORE, RBAC_SEED_PATH, RBAC_CACHE_TTL_SECONDS).

Exit codes:
    0 - Success (for `check`: permission granted)
    1 - Failure: the violated invariant/validation is printed, including
        bad configuration and unknown permission strings
        (for `check`: permission denied)
    2 - Usage error
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from src.authz.catalog import is_known_permission
from src.authz.diagnostics import render_report
from src.main import build_engine
from src.shared.errors import RbacError, ValidationError
from src.shared.logging.error_handler import log_structured_error

if TYPE_CHECKING:
    from collections.abc import Callable

    from src.main import RbacEngine
    from src.shared.types import Assignment, Role

logger = logging.getLogger("rbac_admin")


# -- Output helpers --


def _role_dict(role: Role) -> dict[str, Any]:
    return {
        "id": str(role.role_id),
        "name": role.name,
        "display_name": role.display_name,
        "level": role.level,
        "is_system": role.is_system,
        "is_default": role.is_default,
        "permission_count": len(role.permissions),
        "permissions": sorted(role.permissions),
    }


def _assignment_dict(assignment: Assignment, role_name: str) -> dict[str, Any]:
    return {
        "id": str(assignment.assignment_id),
        "user_id": str(assignment.user_id),
        "role": role_name,
        "scope_id": str(assignment.scope_id) if assignment.scope_id else None,
        "granted_by": str(assignment.granted_by) if assignment.granted_by else None,
        "granted_at": assignment.granted_at.isoformat(),
        "expires_at": assignment.expires_at.isoformat() if assignment.expires_at else None,
    }


def _print_roles_table(roles: list[Role]) -> None:
    print(f"{'Name':<14}{'Display Name':<18}{'Level':<7}{'Default':<9}Permissions")
    print("-" * 60)
    for role in roles:
        default = "Yes" if role.is_default else "No"
        print(
            f"{role.name:<14}{role.display_name:<18}{role.level:<7}{default:<9}"
            f"{len(role.permissions)}",
        )


def _emit(args: argparse.Namespace, payload: dict[str, Any], lines: list[str]) -> None:
    if args.json:
        print(json.dumps(payload, indent=2))
    else:
        for line in lines:
            print(line)


# -- Subcommands --


async def cmd_seed(engine: RbacEngine, args: argparse.Namespace) -> int:
    await engine.seed_defaults()
    roles = await engine.roles.list_roles()
    if args.json:
        print(json.dumps({"roles": [_role_dict(r) for r in roles]}, indent=2))
    else:
        print("Role seeding completed.")
        _print_roles_table(roles)
    return 0


async def cmd_roles(engine: RbacEngine, args: argparse.Namespace) -> int:
    roles = await engine.roles.list_roles()
    if args.json:
        print(json.dumps({"roles": [_role_dict(r) for r in roles]}, indent=2))
    else:
        _print_roles_table(roles)
    return 0


async def cmd_define_role(engine: RbacEngine, args: argparse.Namespace) -> int:
    role = await engine.roles.define_role(
        name=args.name,
        display_name=args.display_name or "",
        description=args.description or "",
        permissions=args.permissions,
        level=args.level,
        is_default=args.default,
        actor=args.actor,
    )
    _emit(
        args,
        {"role": _role_dict(role)},
        [f"Created role: {role.name} (level {role.level}, {len(role.permissions)} permissions)"],
    )
    return 0


async def cmd_set_permissions(engine: RbacEngine, args: argparse.Namespace) -> int:
    role = await engine.roles.get_role_by_name(args.role)
    privileges = await engine.resolver.actor_privileges(args.actor, args.scope)
    updated = await engine.roles.update_role_permissions(
        role.role_id,
        args.permissions,
        privileges=privileges,
        actor=args.actor,
    )
    _emit(
        args,
        {"role": _role_dict(updated)},
        [f"Updated role: {updated.name} ({len(updated.permissions)} permissions)"],
    )
    return 0


async def cmd_delete_role(engine: RbacEngine, args: argparse.Namespace) -> int:
    role = await engine.roles.get_role_by_name(args.role)
    await engine.roles.delete_role(role.role_id, actor=args.actor)
    _emit(args, {"deleted": role.name}, [f"Deleted role: {role.name}"])
    return 0


async def cmd_grant(engine: RbacEngine, args: argparse.Namespace) -> int:
    role = await engine.roles.get_role_by_name(args.role)
    before = await engine.assignments.list_for_user(args.user, args.scope)
    already = any(a.role_id == role.role_id for a in before)
    assignment = await engine.assignments.grant(
        args.user,
        role.role_id,
        args.scope,
        args.granted_by,
        expires_at=args.expires_at,
    )
    scope = str(args.scope) if args.scope else "Global"
    status = "User already has this role; no action needed." if already else "Role assigned."
    _emit(
        args,
        {"created": not already, "assignment": _assignment_dict(assignment, role.name)},
        [
            status,
            f"  User:       {assignment.user_id}",
            f"  Role:       {role.name} (level {role.level})",
            f"  Scope:      {scope}",
            f"  Granted at: {assignment.granted_at.isoformat()}",
        ],
    )
    return 0


async def cmd_revoke(engine: RbacEngine, args: argparse.Namespace) -> int:
    role = await engine.roles.get_role_by_name(args.role)
    removed = await engine.assignments.revoke(
        args.user,
        role.role_id,
        args.scope,
        revoked_by=args.actor,
    )
    msg = (
        f"Removed role {role.name} from user {args.user}"
        if removed
        else f"User {args.user} did not have role {role.name}; nothing to do"
    )
    _emit(args, {"removed": removed, "role": role.name, "user_id": str(args.user)}, [msg])
    return 0


async def cmd_explain(engine: RbacEngine, args: argparse.Namespace) -> int:
    report = await engine.explain(args.user, args.scope, probe=args.permission)
    _emit(args, report.to_dict(), render_report(report))
    return 0


async def cmd_check(engine: RbacEngine, args: argparse.Namespace) -> int:
    if not is_known_permission(args.permission):
        raise ValidationError(f"Unknown permission: {args.permission}", field="permission")
    allowed = await engine.resolver.has_permission(args.user, args.scope, args.permission)
    _emit(
        args,
        {"user_id": str(args.user), "permission": args.permission, "granted": allowed},
        [f"{args.permission}: {'granted' if allowed else 'DENIED'}"],
    )
    return 0 if allowed else 1


_COMMANDS: dict[str, Callable[[RbacEngine, argparse.Namespace], Any]] = {
    "seed": cmd_seed,
    "roles": cmd_roles,
    "define-role": cmd_define_role,
    "set-permissions": cmd_set_permissions,
    "delete-role": cmd_delete_role,
    "grant": cmd_grant,
    "revoke": cmd_revoke,
    "explain": cmd_explain,
    "check": cmd_check,
}


# -- Argument parsing --


def _permission_list(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def _aware_datetime(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        msg = f"timestamp must include a UTC offset: {value}"
        raise argparse.ArgumentTypeError(msg)
    return parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="RBAC administration")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("seed", help="Create missing built-in roles from the seed table")
    sub.add_parser("roles", help="List roles by level")

    p = sub.add_parser("define-role", help="Create a custom role")
    p.add_argument("name")
    p.add_argument("--display-name")
    p.add_argument("--description")
    p.add_argument("--permissions", type=_permission_list, default=[])
    p.add_argument("--level", type=int, default=0)
    p.add_argument("--default", action="store_true", help="Mark as the default role")
    p.add_argument("--actor", type=UUID, default=None)

    p = sub.add_parser("set-permissions", help="Replace a role's permission set")
    p.add_argument("role")
    p.add_argument("--permissions", type=_permission_list, required=True)
    p.add_argument(
        "--actor",
        type=UUID,
        required=True,
        help="Acting user; needs users:manage and a level above the role",
    )
    p.add_argument("--scope", type=UUID, default=None)

    p = sub.add_parser("delete-role", help="Delete a custom role with no assignments")
    p.add_argument("role")
    p.add_argument("--actor", type=UUID, default=None)

    p = sub.add_parser("grant", help="Assign a role to a user")
    p.add_argument("user", type=UUID)
    p.add_argument("role")
    p.add_argument("--scope", type=UUID, default=None)
    p.add_argument("--granted-by", type=UUID, default=None)
    p.add_argument("--expires-at", type=_aware_datetime, default=None)

    p = sub.add_parser("revoke", help="Remove a role from a user")
    p.add_argument("user", type=UUID)
    p.add_argument("role")
    p.add_argument("--scope", type=UUID, default=None)
    p.add_argument("--actor", type=UUID, default=None)

    p = sub.add_parser("explain", help="Explain a user's effective permissions")
    p.add_argument("user", type=UUID)
    p.add_argument("--scope", type=UUID, default=None)
    p.add_argument("--permission", default=None, help="Permission to probe")

    p = sub.add_parser("check", help="Does the user have a permission?")
    p.add_argument("user", type=UUID)
    p.add_argument("permission")
    p.add_argument("--scope", type=UUID, default=None)

    return parser


async def run(
    args: argparse.Namespace,
    *,
    engine_factory: Callable[[], RbacEngine] = build_engine,
) -> int:
    engine: RbacEngine | None = None
    try:
        engine = engine_factory()
        return await _COMMANDS[args.command](engine, args)
    except RbacError as exc:
        structured = log_structured_error(
            logger,
            exc,
            context={"command": args.command},
            level=logging.WARNING,
        )
        if args.json:
            print(json.dumps({"error": structured.to_dict(include_stack=False)}, indent=2))
        else:
            print(f"error: {exc.code}: {exc}", file=sys.stderr)
        return 1
    finally:
        if engine is not None:
            await engine.close()


def main(
    argv: list[str] | None = None,
    *,
    engine_factory: Callable[[], RbacEngine] = build_engine,
) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    return asyncio.run(run(args, engine_factory=engine_factory))


if __name__ == "__main__":
    sys.exit(main())
