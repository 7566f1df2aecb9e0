"""AuditEventWriter - Append-only audit event recording.

Infrastructure layer component. Writes RBAC audit entries to the
rbac_audit_events table via SQLAlchemy. Enforces:
  - action field is non-empty
  - Append-only: no update/delete operations

Usage (composition root only -- authz modules depend on AuditPort):
    writer = AuditEventWriter(session_factory=session_factory)
    await writer.append(entry)
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from src.infra.models import AuditEvent
from src.ports.audit_port import AuditPort
from src.shared.errors import ValidationError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from src.shared.types import AuditEntry


class AuditEventWriter(AuditPort):
    """Append-only writer for RBAC audit events.

    This class intentionally has NO update/delete methods.
    Audit records are immutable once written.
    """

    def __init__(self, *, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, entry: AuditEntry) -> None:
        """Write a single audit entry in its own transaction.

        Raises:
            ValidationError: If action is empty.
        """
        if not entry.action or not entry.action.strip():
            raise ValidationError("action must be non-empty", field="action")

        event = AuditEvent(
            id=uuid4(),
            action=entry.action.strip(),
            actor_id=entry.actor,
            target_id=entry.target,
            role_id=entry.role_id,
            role_name=entry.role_name,
            scope_id=entry.scope_id,
            detail=dict(entry.detail),
            created_at=entry.timestamp,
        )

        async with self._session_factory() as session:
            session.add(event)
            await session.commit()
