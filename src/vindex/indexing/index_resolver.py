"""Resolution of a user's provider-side index.

Lookup order: in-memory cache, stored mapping, provider index with the
user's expected name, and only then a new index. Resolution for one user is
serialized by a per-user lock, so two concurrent first-time calls end up
with a single index.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import TYPE_CHECKING

from vindex.core.exceptions import StoreError
from vindex.core.logging_config import get_logger
from vindex.core.models import UserIndexMapping
from vindex.core.protocols import VideoProvider
from vindex.indexing.records import UserIndexRepository

if TYPE_CHECKING:
    import structlog

logger = get_logger(__name__)


class IndexCache:
    """User id -> index mapping cache, scoped to whoever owns the instance."""

    def __init__(self) -> None:
        self._entries: dict[str, UserIndexMapping] = {}

    def get(self, user_id: str) -> UserIndexMapping | None:
        return self._entries.get(user_id)

    def put(self, mapping: UserIndexMapping) -> None:
        self._entries[mapping.user_id] = mapping

    def invalidate(self, user_id: str) -> None:
        self._entries.pop(user_id, None)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class UserIndexResolver:
    """Finds or lazily creates the provider index for a user."""

    def __init__(
        self,
        provider: VideoProvider,
        mappings: UserIndexRepository | None,
        *,
        name_for: Callable[[str], str],
        cache: IndexCache | None = None,
    ) -> None:
        self._provider = provider
        self._mappings = mappings
        self._name_for = name_for
        self.cache = cache if cache is not None else IndexCache()
        self._user_locks: dict[str, asyncio.Lock] = {}

    def _get_user_lock(self, user_id: str) -> asyncio.Lock:
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    async def resolve(self, user_id: str) -> UserIndexMapping:
        """Return the user's index mapping, creating the index if needed."""
        cached = self.cache.get(user_id)
        if cached is not None:
            return cached

        lock = self._get_user_lock(user_id)
        async with lock:
            # Another caller may have finished while we waited.
            mapping = self.cache.get(user_id)
            if mapping is None:
                mapping = await self._resolve_uncached(user_id)

        # Later calls hit the cache; the lock is only needed until then.
        if not lock.locked() and self._user_locks.get(user_id) is lock:
            del self._user_locks[user_id]
        return mapping

    async def _resolve_uncached(self, user_id: str) -> UserIndexMapping:
        resolve_logger = logger.bind(user_id=user_id, operation="resolve_index")

        mapping = await self._lookup_mapping(user_id, resolve_logger)
        if mapping is not None:
            resolve_logger.debug("index_mapping_found", index_id=mapping.index_id)
            self.cache.put(mapping)
            return mapping

        name = self._name_for(user_id)
        existing = await self._provider.find_existing_index(name)
        if existing is not None:
            resolve_logger.info("index_reused", index_id=existing.id, index_name=name)
            mapping = UserIndexMapping(
                user_id=user_id, index_id=existing.id, index_name=existing.name
            )
        else:
            created = await self._provider.create_index(name)
            resolve_logger.info("index_created", index_id=created.id, index_name=name)
            mapping = UserIndexMapping(
                user_id=user_id, index_id=created.id, index_name=created.name
            )

        await self._persist_mapping(mapping, resolve_logger)
        self.cache.put(mapping)
        return mapping

    async def _lookup_mapping(
        self, user_id: str, resolve_logger: structlog.stdlib.BoundLogger
    ) -> UserIndexMapping | None:
        if self._mappings is None:
            return None
        try:
            return await self._mappings.get(user_id)
        except StoreError as e:
            # The provider lookup by name still finds the index.
            resolve_logger.warning("index_mapping_lookup_failed", error=str(e))
            return None

    async def _persist_mapping(
        self, mapping: UserIndexMapping, resolve_logger: structlog.stdlib.BoundLogger
    ) -> None:
        if self._mappings is None:
            return
        try:
            result = await self._mappings.save(mapping)
        except Exception as e:
            resolve_logger.warning(
                "index_mapping_persist_failed",
                index_id=mapping.index_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if not result.ok:
            resolve_logger.warning(
                "index_mapping_persist_failed", index_id=mapping.index_id, error=result.error
            )
