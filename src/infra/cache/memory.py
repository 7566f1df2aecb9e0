"""Process-local StoragePort with TTL, the default resolution-cache backing."""

from __future__ import annotations

import fnmatch
import time
from typing import TYPE_CHECKING, Any

from src.ports.storage_port import StoragePort

if TYPE_CHECKING:
    from collections.abc import Callable


class InMemoryStorageAdapter(StoragePort):
    """Dict-backed key-value store with lazy TTL expiry.

    ``clock`` is injectable (monotonic seconds) so expiry can be tested
    without sleeping.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._data: dict[str, tuple[Any, float | None]] = {}

    async def put(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + ttl if ttl is not None else None
        self._data[key] = (value, expires_at)

    async def get(self, key: str) -> Any | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and expires_at <= self._clock():
            del self._data[key]
            return None
        return value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def list_keys(self, pattern: str) -> list[str]:
        return [k for k in self._data if fnmatch.fnmatchcase(k, pattern)]
