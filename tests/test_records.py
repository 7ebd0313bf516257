"""Tests for the indexing record and user index repositories."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from vindex.core.exceptions import StoreError
from vindex.core.models import IndexingStatus, MediaIndexingRecord, UserIndexMapping
from vindex.core.protocols import StoreResult
from vindex.indexing import IndexingRecordRepository


def make_record(**overrides) -> MediaIndexingRecord:
    values = {
        "project_id": "p1",
        "media_id": "m1",
        "user_id": "u1",
        "index_id": "idx-1",
        "video_id": "vid-1",
        "task_id": "task-1",
        "status": IndexingStatus.UPLOADING,
    }
    values.update(overrides)
    return MediaIndexingRecord(**values)


class TestIndexingRecordRepository:
    """Test record persistence through the SQLite store."""

    async def test_save_and_get(self, records):
        record = make_record()

        result = await records.save(record)

        assert result.ok
        assert record.created_at is not None
        stored = await records.get("p1", "m1")
        assert stored.status is IndexingStatus.UPLOADING
        assert stored.task_id == "task-1"

    async def test_get_missing(self, records):
        assert await records.get("p1", "missing") is None

    async def test_save_twice_keeps_one_row(self, records, memory_store):
        """Test re-saving the same pair overwrites instead of duplicating."""
        await records.save(make_record(status=IndexingStatus.FAILED, error_message="boom"))
        await records.save(make_record(task_id="task-2", status=IndexingStatus.UPLOADING))

        rows = await memory_store.select_in(records.table, {"project_id": "p1"}, "media_id", ["m1"])
        assert len(rows) == 1
        stored = await records.get("p1", "m1")
        assert stored.task_id == "task-2"
        assert stored.error_message is None

    async def test_same_media_in_two_projects(self, records):
        await records.save(make_record(project_id="p1"))
        await records.save(make_record(project_id="p2", status=IndexingStatus.READY))

        assert (await records.get("p1", "m1")).status is IndexingStatus.UPLOADING
        assert (await records.get("p2", "m1")).status is IndexingStatus.READY

    async def test_update_status_patches_fields(self, records):
        await records.save(make_record(filename="clip.mp4"))

        result = await records.update_status(
            "p1", "m1", status=IndexingStatus.READY, duration=12.0, video_url=None
        )

        assert result.ok
        stored = await records.get("p1", "m1")
        assert stored.status is IndexingStatus.READY
        assert stored.duration == 12.0
        assert stored.filename == "clip.mp4"

    async def test_update_status_without_record(self, records):
        result = await records.update_status("p1", "ghost", status=IndexingStatus.READY)
        assert result.ok
        assert result.data == []

    async def test_restore(self, records):
        await records.save(
            make_record(
                media_id="m1",
                status=IndexingStatus.READY,
                duration=30.0,
                thumbnail_urls=["https://s/0.jpg"],
            )
        )
        await records.save(
            make_record(media_id="m2", status=IndexingStatus.FAILED, error_message="too short")
        )
        await records.save(make_record(project_id="other", media_id="m3"))

        restored = await records.restore("p1", ["m1", "m2", "m3", ""])

        assert set(restored) == {"m1", "m2"}
        assert restored["m1"].metadata == {"duration": 30.0, "thumbnail_urls": ["https://s/0.jpg"]}
        assert restored["m2"].error_message == "too short"

    async def test_restore_empty_request(self, records):
        assert await records.restore("p1", []) == {}

    async def test_store_read_errors_propagate(self):
        store = MagicMock()
        store.select_one = AsyncMock(side_effect=StoreError("down", table="media_twelvelabs"))

        with pytest.raises(StoreError):
            await IndexingRecordRepository(store).get("p1", "m1")

    async def test_failed_write_is_returned(self):
        store = MagicMock()
        store.upsert = AsyncMock(return_value=StoreResult.failure("rejected"))
        record = make_record()

        result = await IndexingRecordRepository(store).save(record)

        assert not result.ok
        assert record.created_at is None


class TestUserIndexRepository:
    async def test_save_and_get(self, user_indexes):
        mapping = UserIndexMapping(user_id="u1", index_id="idx-1", index_name="opencut_user_u1")

        assert (await user_indexes.save(mapping)).ok
        stored = await user_indexes.get("u1")

        assert stored.index_id == "idx-1"
        assert stored.created_at is not None

    async def test_save_is_keyed_on_user(self, user_indexes, memory_store):
        await user_indexes.save(UserIndexMapping(user_id="u1", index_id="a", index_name="n"))
        await user_indexes.save(UserIndexMapping(user_id="u1", index_id="b", index_name="n"))

        rows = await memory_store.select_in(user_indexes.table, {}, "user_id", ["u1"])
        assert len(rows) == 1
        assert (await user_indexes.get("u1")).index_id == "b"

    async def test_get_missing(self, user_indexes):
        assert await user_indexes.get("nobody") is None
