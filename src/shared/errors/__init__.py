"""Unified error hierarchy for the RBAC engine.

All domain errors inherit from RbacError and carry a machine-readable
``code`` so that calling CLIs/UIs can render actionable messages.
Storage-layer failures are NOT wrapped here; they propagate untouched.
"""

from __future__ import annotations


class RbacError(Exception):
    """Base error for all RBAC engine exceptions."""

    def __init__(self, message: str, code: str = "RBAC_ERROR") -> None:
        self.code = code
        super().__init__(message)


class ValidationError(RbacError):
    """Input validation failed (unknown permission, empty name, ...)."""

    def __init__(self, message: str, field: str = "") -> None:
        self.field = field
        super().__init__(message, code="VALIDATION")


class ConflictError(RbacError):
    """Invariant violation requiring a caller decision."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        super().__init__(message, code=code)


class InvariantError(ConflictError):
    """A named model invariant would be broken (e.g. a second default role)."""

    def __init__(self, invariant: str, message: str) -> None:
        self.invariant = invariant
        super().__init__(message, code="INVARIANT")


class NotFoundError(RbacError):
    """Referenced role/assignment does not exist."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            code="NOT_FOUND",
        )


class AuthorizationError(RbacError):
    """Caller lacks the privilege for an administrative mutation."""

    def __init__(self, required: str = "", message: str = "") -> None:
        self.required = required
        msg = message or (f"Permission denied: {required}" if required else "Permission denied")
        super().__init__(msg, code="AUTH_DENIED")


__all__ = [
    "AuthorizationError",
    "ConflictError",
    "InvariantError",
    "NotFoundError",
    "RbacError",
    "ValidationError",
]
