"""StoragePort - Key-value persistence for the permission resolution cache.

Soft dependency. A lost entry only costs a re-resolution.
Day-1 implementation: InMemoryStorageAdapter (process-local dict + TTL).
Real implementation: RedisStorageAdapter (shared across workers).

Values must be JSON-serializable (adapters may serialize).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StoragePort(ABC):
    """Port: Generic key-value read/write with TTL."""

    @abstractmethod
    async def put(
        self,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> None:
        """Store a value with optional TTL.

        Args:
            key: Storage key.
            value: Value to store (must be JSON-serializable).
            ttl: Time-to-live in seconds (None = no expiry).
        """

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Retrieve a value by key, None if absent or expired."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a value by key (no-op if absent)."""

    @abstractmethod
    async def list_keys(self, pattern: str) -> list[str]:
        """List keys matching a glob-style pattern (e.g. "rbac:perms:<user>:*")."""
