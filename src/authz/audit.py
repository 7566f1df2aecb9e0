"""Fire-and-forget audit emission shared by the authz services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.ports.audit_port import AuditPort
    from src.shared.types import AuditEntry

logger = logging.getLogger(__name__)


async def record_audit(audit: AuditPort | None, entry: AuditEntry) -> None:
    """Append an entry after the mutation has committed.

    The mutation is already durable at this point; a failing audit sink is
    logged and never propagated to the caller.
    """
    if audit is None:
        return
    try:
        await audit.append(entry)
    except Exception:
        logger.warning(
            "Audit append failed: action=%s target=%s",
            entry.action,
            entry.target,
            exc_info=True,
        )
