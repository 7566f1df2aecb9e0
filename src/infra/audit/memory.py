"""In-memory AuditPort for tests and the memory-backed CLI."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.ports.audit_port import AuditPort

if TYPE_CHECKING:
    from src.shared.types import AuditEntry

logger = logging.getLogger(__name__)


class InMemoryAuditLog(AuditPort):
    """Collects entries in append order and mirrors them to the log."""

    def __init__(self) -> None:
        self.entries: list[AuditEntry] = []

    async def append(self, entry: AuditEntry) -> None:
        self.entries.append(entry)
        logger.info(
            "audit action=%s actor=%s target=%s role=%s scope=%s",
            entry.action,
            entry.actor,
            entry.target,
            entry.role_name or entry.role_id,
            entry.scope_id or "global",
        )

    def actions(self) -> list[str]:
        return [e.action for e in self.entries]
