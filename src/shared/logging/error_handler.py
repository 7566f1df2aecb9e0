"""Structured error logging handler.

- Error logs carry error_code, message, stack trace and context
- Output is a dict suitable for JSON log aggregation and CLI --json output
- Sensitive context fields are redacted
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class StructuredError:
    """Structured representation of an error for logging."""

    error_code: str
    message: str
    stack_trace: str
    context: dict[str, Any] = field(default_factory=dict)
    invariant: str = ""
    error_field: str = ""

    def to_dict(self, *, include_stack: bool = True) -> dict[str, Any]:
        """Convert to dict suitable for JSON logging."""
        d = asdict(self)
        d["context"] = _redact_sensitive(d["context"])
        if not include_stack:
            d.pop("stack_trace")
        return d


_SENSITIVE_KEYS = frozenset(
    {
        "password",
        "token",
        "secret",
        "api_key",
        "authorization",
        "database_url",
        "redis_url",
        "credential",
    }
)


def _redact_sensitive(data: dict[str, Any]) -> dict[str, Any]:
    """Redact values of sensitive keys."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in _SENSITIVE_KEYS:
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = _redact_sensitive(value)
        else:
            result[key] = value
    return result


def create_structured_error(
    exc: Exception,
    *,
    error_code: str = "",
    context: dict[str, Any] | None = None,
) -> StructuredError:
    """Create a StructuredError from an exception.

    If the exception has a `.code` attribute (RbacError subclasses), it is
    used as the error_code unless overridden. `.invariant` and `.field` are
    carried over when present.
    """
    code = error_code or getattr(exc, "code", type(exc).__name__)
    stack = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return StructuredError(
        error_code=code,
        message=str(exc),
        stack_trace="".join(stack),
        context=context or {},
        invariant=getattr(exc, "invariant", ""),
        error_field=getattr(exc, "field", ""),
    )


def log_structured_error(
    logger: logging.Logger,
    exc: Exception,
    *,
    error_code: str = "",
    context: dict[str, Any] | None = None,
    level: int = logging.ERROR,
) -> StructuredError:
    """Log an exception as a structured error.

    Returns the StructuredError for further processing (e.g. CLI output).
    """
    structured = create_structured_error(exc, error_code=error_code, context=context)
    logger.log(level, "structured_error", extra={"structured_error": structured.to_dict()})
    return structured
