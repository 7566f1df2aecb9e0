"""Resolution cache: effective permission sets per (user, scope).

An explicit, injected component (never module-level state). Entries are
tagged with a generation token; grant/revoke bumps the user's generation
and role edits bump the global one, so:

- invalidation is synchronous with the write (the next read misses)
- a resolve() that raced a revoke cannot re-populate a stale entry: it
  stored its result under the generation it read *before* loading the
  stores, which no longer matches
- the TTL is only a backstop for a lost invalidation (e.g. Redis blip)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from uuid import uuid4

if TYPE_CHECKING:
    from uuid import UUID

    from src.ports.storage_port import StoragePort

logger = logging.getLogger(__name__)

_GLOBAL_SCOPE = "global"


class ResolutionCache:
    """Generation-tagged cache of resolved permission sets over a StoragePort."""

    def __init__(
        self,
        storage: StoragePort,
        *,
        ttl_seconds: int = 5,
        namespace: str = "rbac",
    ) -> None:
        if ttl_seconds <= 0:
            msg = "ttl_seconds must be positive"
            raise ValueError(msg)
        self._storage = storage
        self._ttl = ttl_seconds
        self._ns = namespace
        # Generation keys must outlive every entry tagged with them.
        self._generation_ttl = max(ttl_seconds * 100, 3600)

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def _entry_key(self, user_id: UUID, scope_id: UUID | None) -> str:
        return f"{self._ns}:perms:{user_id}:{scope_id or _GLOBAL_SCOPE}"

    def _user_generation_key(self, user_id: UUID) -> str:
        return f"{self._ns}:gen:user:{user_id}"

    def _global_generation_key(self) -> str:
        return f"{self._ns}:gen:all"

    async def generation(self, user_id: UUID) -> str:
        """Current generation token for a user (read BEFORE loading the stores)."""
        global_gen = await self._storage.get(self._global_generation_key()) or "0"
        user_gen = await self._storage.get(self._user_generation_key(user_id)) or "0"
        return f"{global_gen}/{user_gen}"

    async def get(self, user_id: UUID, scope_id: UUID | None) -> frozenset[str] | None:
        entry = await self._storage.get(self._entry_key(user_id, scope_id))
        if not entry:
            return None
        if entry.get("gen") != await self.generation(user_id):
            return None
        return frozenset(entry.get("perms", []))

    async def put(
        self,
        user_id: UUID,
        scope_id: UUID | None,
        permissions: frozenset[str],
        *,
        generation: str,
    ) -> None:
        await self._storage.put(
            self._entry_key(user_id, scope_id),
            {"gen": generation, "perms": sorted(permissions)},
            ttl=self._ttl,
        )

    async def invalidate_user(self, user_id: UUID) -> None:
        """Drop every cached scope for one user (grant/revoke path)."""
        await self._storage.put(
            self._user_generation_key(user_id),
            uuid4().hex,
            ttl=self._generation_ttl,
        )
        for key in await self._storage.list_keys(f"{self._ns}:perms:{user_id}:*"):
            await self._storage.delete(key)
        logger.debug("Resolution cache invalidated for user=%s", user_id)

    async def invalidate_all(self) -> None:
        """Drop every cached entry (role permission/default changes)."""
        await self._storage.put(
            self._global_generation_key(),
            uuid4().hex,
            ttl=self._generation_ttl,
        )
        logger.debug("Resolution cache invalidated globally")
