"""Tests for per-user index resolution."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

from vindex.core.exceptions import StoreError
from vindex.core.models import ProviderIndex, UserIndexMapping
from vindex.indexing import IndexCache, UserIndexResolver


class TestUserIndexResolver:
    """Test lookup order: cache, stored mapping, provider by name, create."""

    async def test_creates_and_persists_index(self, resolver, mock_video_provider, user_indexes):
        mapping = await resolver.resolve("u1")

        assert mapping.index_id == "idx-1"
        assert mapping.index_name == "opencut_user_u1"
        mock_video_provider.find_existing_index.assert_awaited_once_with("opencut_user_u1")
        mock_video_provider.create_index.assert_awaited_once_with("opencut_user_u1")
        assert (await user_indexes.get("u1")).index_id == "idx-1"

    async def test_reuses_index_found_by_name(self, resolver, mock_video_provider, user_indexes):
        mock_video_provider.find_existing_index.return_value = ProviderIndex(
            id="idx-existing", name="opencut_user_u1"
        )

        mapping = await resolver.resolve("u1")

        assert mapping.index_id == "idx-existing"
        mock_video_provider.create_index.assert_not_awaited()
        assert (await user_indexes.get("u1")).index_id == "idx-existing"

    async def test_stored_mapping_skips_provider(self, resolver, mock_video_provider, user_indexes):
        await user_indexes.save(UserIndexMapping(user_id="u1", index_id="idx-stored", index_name="n"))

        mapping = await resolver.resolve("u1")

        assert mapping.index_id == "idx-stored"
        mock_video_provider.find_existing_index.assert_not_awaited()

    async def test_cache_hit(self, resolver, mock_video_provider):
        first = await resolver.resolve("u1")
        second = await resolver.resolve("u1")

        assert first == second
        assert "u1" in resolver.cache
        assert mock_video_provider.create_index.await_count == 1

    async def test_shared_cache(self, mock_video_provider, user_indexes):
        cache = IndexCache()
        cache.put(UserIndexMapping(user_id="u1", index_id="idx-cached", index_name="n"))
        resolver = UserIndexResolver(
            mock_video_provider, user_indexes, name_for=lambda u: u, cache=cache
        )

        assert (await resolver.resolve("u1")).index_id == "idx-cached"
        mock_video_provider.find_existing_index.assert_not_awaited()

    async def test_concurrent_first_calls_create_one_index(self, resolver, mock_video_provider):
        async def slow_create(name):
            await asyncio.sleep(0.01)
            return ProviderIndex(id="idx-1", name=name)

        mock_video_provider.create_index.side_effect = slow_create

        results = await asyncio.gather(*(resolver.resolve("u1") for _ in range(5)))

        assert {m.index_id for m in results} == {"idx-1"}
        assert mock_video_provider.create_index.await_count == 1

    async def test_different_users_get_different_indexes(self, resolver, mock_video_provider):
        await resolver.resolve("u1")
        await resolver.resolve("u2")

        names = [call.args[0] for call in mock_video_provider.create_index.await_args_list]
        assert names == ["opencut_user_u1", "opencut_user_u2"]

    async def test_store_lookup_failure_falls_back_to_provider(self, mock_video_provider):
        mappings = MagicMock()
        mappings.get = AsyncMock(side_effect=StoreError("down"))
        mappings.save = AsyncMock(return_value=MagicMock(ok=True))
        mock_video_provider.find_existing_index.return_value = ProviderIndex(id="idx-9", name="u1")
        resolver = UserIndexResolver(mock_video_provider, mappings, name_for=lambda u: u)

        mapping = await resolver.resolve("u1")

        assert mapping.index_id == "idx-9"
        mappings.save.assert_awaited_once()

    async def test_failed_mapping_write_still_resolves(self, mock_video_provider):
        mappings = MagicMock()
        mappings.get = AsyncMock(return_value=None)
        mappings.save = AsyncMock(return_value=MagicMock(ok=False, error="rejected"))
        resolver = UserIndexResolver(mock_video_provider, mappings, name_for=lambda u: u)

        assert (await resolver.resolve("u1")).index_id == "idx-1"

    async def test_mapping_write_exception_still_resolves(self, mock_video_provider):
        mappings = MagicMock()
        mappings.get = AsyncMock(return_value=None)
        mappings.save = AsyncMock(side_effect=RuntimeError("connection reset"))
        resolver = UserIndexResolver(mock_video_provider, mappings, name_for=lambda u: u)

        mapping = await resolver.resolve("u1")

        assert mapping.index_id == "idx-1"
        assert "u1" in resolver.cache

    async def test_user_locks_released_once_cached(self, resolver, mock_video_provider):
        async def slow_create(name):
            await asyncio.sleep(0.01)
            return ProviderIndex(id="idx-1", name=name)

        mock_video_provider.create_index.side_effect = slow_create

        await asyncio.gather(*(resolver.resolve("u1") for _ in range(3)))
        await resolver.resolve("u2")

        assert resolver._user_locks == {}
        assert len(resolver.cache) == 2

    async def test_without_repository(self, mock_video_provider):
        resolver = UserIndexResolver(mock_video_provider, None, name_for=lambda u: f"x_{u}")
        assert (await resolver.resolve("u1")).index_name == "x_u1"


class TestIndexCache:
    def test_put_get_invalidate(self):
        cache = IndexCache()
        mapping = UserIndexMapping(user_id="u1", index_id="i", index_name="n")

        cache.put(mapping)
        assert cache.get("u1") == mapping
        assert len(cache) == 1

        cache.invalidate("u1")
        cache.invalidate("u1")
        assert cache.get("u1") is None

    def test_clear(self):
        cache = IndexCache()
        cache.put(UserIndexMapping(user_id="u1", index_id="i", index_name="n"))
        cache.clear()
        assert len(cache) == 0
