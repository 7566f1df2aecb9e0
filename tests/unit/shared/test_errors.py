"""Tests for the RBAC error hierarchy."""

from __future__ import annotations

from src.shared.errors import (
    AuthorizationError,
    ConflictError,
    InvariantError,
    NotFoundError,
    RbacError,
    ValidationError,
)


class TestRbacError:
    def test_default_code(self) -> None:
        error = RbacError("Test error")
        assert str(error) == "Test error"
        assert error.code == "RBAC_ERROR"
        assert isinstance(error, Exception)

    def test_custom_code(self) -> None:
        assert RbacError("x", code="CUSTOM").code == "CUSTOM"


class TestValidationError:
    def test_field(self) -> None:
        error = ValidationError("Unknown permission(s): agents:fly", field="permissions")
        assert error.code == "VALIDATION"
        assert error.field == "permissions"
        assert isinstance(error, RbacError)

    def test_field_defaults_empty(self) -> None:
        assert ValidationError("x").field == ""


class TestConflictErrors:
    def test_conflict(self) -> None:
        error = ConflictError("Cannot delete system role owner")
        assert error.code == "CONFLICT"

    def test_invariant_is_conflict(self) -> None:
        error = InvariantError("single_default_role", "already a default")
        assert isinstance(error, ConflictError)
        assert error.code == "INVARIANT"
        assert error.invariant == "single_default_role"
        assert str(error) == "already a default"


class TestNotFoundError:
    def test_message(self) -> None:
        error = NotFoundError("Role", "abc")
        assert str(error) == "Role not found: abc"
        assert error.code == "NOT_FOUND"
        assert error.resource_type == "Role"
        assert error.resource_id == "abc"


class TestAuthorizationError:
    def test_default_message(self) -> None:
        assert str(AuthorizationError()) == "Permission denied"

    def test_required(self) -> None:
        error = AuthorizationError(required="level>80")
        assert str(error) == "Permission denied: level>80"
        assert error.code == "AUTH_DENIED"
        assert error.required == "level>80"

    def test_custom_message(self) -> None:
        assert str(AuthorizationError(required="x", message="nope")) == "nope"
