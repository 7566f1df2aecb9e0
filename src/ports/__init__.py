"""Port interfaces - Layer boundary contracts.

Ports (4):
    RoleStore        - Role definitions (hard dep)
    AssignmentStore  - (user, role, scope) bindings (hard dep)
    AuditPort        - Append-only audit sink (soft dep)
    StoragePort      - Key-value cache backing for permission resolution
"""

from src.ports.assignment_store import AssignmentStore
from src.ports.audit_port import AuditPort
from src.ports.role_store import RoleStore
from src.ports.storage_port import StoragePort

__all__ = [
    "AssignmentStore",
    "AuditPort",
    "RoleStore",
    "StoragePort",
]
