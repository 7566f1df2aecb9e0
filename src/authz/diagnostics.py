"""Diagnostics: explain why a user has (or lacks) permissions in a scope.

explain() does not re-implement resolution. It renders the
ResolutionTrace produced by PermissionResolver.trace(), the same code
path resolve() runs, so the report can never disagree with resolve().
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from src.authz.catalog import is_known_permission
from src.authz.resolver import FindingStatus
from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from uuid import UUID

    from src.authz.resolver import PermissionResolver, ResolutionTrace


@dataclass(frozen=True)
class DiagnosticReport:
    """Human- and machine-readable explanation of one resolution."""

    trace: ResolutionTrace
    probe: str | None = None

    @property
    def final_permissions(self) -> frozenset[str]:
        return self.trace.permissions

    @property
    def fallback_applied(self) -> bool:
        return self.trace.fallback_applied

    @property
    def probe_granted(self) -> bool | None:
        if self.probe is None:
            return None
        return self.probe in self.trace.permissions

    def granted_by(self, permission: str) -> list[str]:
        """Names of the roles that supply ``permission`` in this resolution."""
        return [r.name for r in self.trace.applied_roles if permission in r.permissions]

    def to_dict(self) -> dict[str, Any]:
        trace = self.trace
        return {
            "user_id": str(trace.user_id),
            "scope_id": str(trace.scope_id) if trace.scope_id else None,
            "evaluated_at": trace.evaluated_at.isoformat(),
            "assignments": [
                {
                    "assignment_id": str(f.assignment.assignment_id),
                    "role_id": str(f.assignment.role_id),
                    "role": f.role.name if f.role else None,
                    "level": f.role.level if f.role else None,
                    "scope_id": str(f.assignment.scope_id) if f.assignment.scope_id else None,
                    "status": f.status.value,
                    "contributed": sorted(f.contributed),
                    "expires_at": (
                        f.assignment.expires_at.isoformat() if f.assignment.expires_at else None
                    ),
                }
                for f in trace.findings
            ],
            "default_role": trace.default_role.name if trace.default_role else None,
            "fallback_applied": trace.fallback_applied,
            "fallback_reason": trace.fallback_reason,
            "final_permissions": sorted(trace.permissions),
            "probe": (
                {
                    "permission": self.probe,
                    "granted": self.probe_granted,
                    "granted_by": self.granted_by(self.probe),
                }
                if self.probe is not None
                else None
            ),
        }


async def explain(
    resolver: PermissionResolver,
    user_id: UUID,
    scope_id: UUID | None,
    *,
    probe: str | None = None,
) -> DiagnosticReport:
    """Explain a resolution, optionally answering "does the user have ``probe``?".

    Raises:
        ValidationError: If probe is not a catalog permission.
    """
    if probe is not None and not is_known_permission(probe):
        raise ValidationError(f"Unknown permission: {probe}", field="probe")
    return DiagnosticReport(trace=await resolver.trace(user_id, scope_id), probe=probe)


_STATUS_MARK = {
    FindingStatus.APPLIED: "+",
    FindingStatus.OUT_OF_SCOPE: "-",
    FindingStatus.EXPIRED: "x",
    FindingStatus.ROLE_MISSING: "!",
}


def render_report(report: DiagnosticReport) -> list[str]:
    """Plain-text lines for terminals and logs."""
    trace = report.trace
    scope = str(trace.scope_id) if trace.scope_id else "global"
    lines = [f"user {trace.user_id} in scope {scope}"]

    if not trace.findings:
        lines.append("  no role assignments")
    for f in trace.findings:
        role = f"{f.role.name} (level {f.role.level})" if f.role else str(f.assignment.role_id)
        where = str(f.assignment.scope_id) if f.assignment.scope_id else "global"
        line = f"  {_STATUS_MARK[f.status]} {role} @ {where}: {f.status.value}"
        if f.status is FindingStatus.APPLIED:
            line += f", +{len(f.contributed)} permission(s)"
        lines.append(line)

    lines.append(f"  {trace.fallback_reason}")
    lines.append(f"  effective permissions: {len(trace.permissions)}")
    if report.probe is not None:
        if report.probe_granted:
            via = ", ".join(report.granted_by(report.probe))
            lines.append(f"  {report.probe}: granted via {via}")
        else:
            lines.append(f"  {report.probe}: DENIED")
    return lines
