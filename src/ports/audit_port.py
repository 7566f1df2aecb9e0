"""AuditPort - Append-only sink for RBAC mutation events.

Soft dependency. Called after a grant/revoke/role mutation commits;
callers treat it as fire-and-forget (a failing sink is logged, never
allowed to undo or fail the mutation).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.shared.types import AuditEntry


class AuditPort(ABC):
    """Port: Audit event append."""

    @abstractmethod
    async def append(self, entry: AuditEntry) -> None:
        """Append a single audit entry. There is no update or delete."""
