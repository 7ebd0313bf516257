"""Persistence of indexing records and user index mappings.

Both repositories sit on a ``StatusStore`` and own the row layout. Writes
return the store's ``StoreResult`` untouched; deciding whether a failed write
matters is left to the caller.
"""

from __future__ import annotations

from typing import Any

from vindex.core.logging_config import get_logger
from vindex.core.models import (
    MediaIndexingRecord,
    RestoredStatus,
    UserIndexMapping,
    utc_now_iso,
)
from vindex.core.protocols import StatusStore, StoreResult

logger = get_logger(__name__)

RECORD_CONFLICT_KEY = "media_id,project_id"


class IndexingRecordRepository:
    """Reads and writes ``MediaIndexingRecord`` rows keyed by (project, media)."""

    def __init__(self, store: StatusStore, table: str = "media_twelvelabs") -> None:
        self._store = store
        self.table = table

    async def save(self, record: MediaIndexingRecord) -> StoreResult:
        """Upsert the record; a second save for the same pair overwrites."""
        row = record.to_row()
        row["updated_at"] = utc_now_iso()
        result = await self._store.upsert(self.table, row, on_conflict=RECORD_CONFLICT_KEY)
        if result.ok and result.first:
            stored = result.first
            if record.created_at is None and stored.get("created_at"):
                record.created_at = str(stored["created_at"])
            record.updated_at = row["updated_at"]
        return result

    async def update_status(
        self, project_id: str, media_id: str, **fields: Any
    ) -> StoreResult:
        """Patch only the given fields; ``updated_at`` is always refreshed."""
        patch = MediaIndexingRecord.patch_row(fields)
        patch["updated_at"] = utc_now_iso()
        return await self._store.update(
            self.table, patch, {"media_id": media_id, "project_id": project_id}
        )

    async def get(self, project_id: str, media_id: str) -> MediaIndexingRecord | None:
        row = await self._store.select_one(
            self.table, {"project_id": project_id, "media_id": media_id}
        )
        return MediaIndexingRecord.from_row(row) if row else None

    async def restore(self, project_id: str, media_ids: list[str]) -> dict[str, RestoredStatus]:
        """Persisted status of each known media item of a project."""
        wanted = [m for m in media_ids if m]
        if not wanted:
            return {}
        rows = await self._store.select_in(
            self.table, {"project_id": project_id}, "media_id", wanted
        )
        restored = {}
        for row in rows:
            record = MediaIndexingRecord.from_row(row)
            restored[record.media_id] = RestoredStatus.from_record(record)
        logger.info(
            "status_restored",
            project_id=project_id,
            requested=len(wanted),
            restored=len(restored),
        )
        return restored


class UserIndexRepository:
    """Reads and writes the user -> provider index mapping."""

    def __init__(self, store: StatusStore, table: str = "user_indexes") -> None:
        self._store = store
        self.table = table

    async def get(self, user_id: str) -> UserIndexMapping | None:
        row = await self._store.select_one(self.table, {"user_id": user_id})
        return UserIndexMapping.from_row(row) if row else None

    async def save(self, mapping: UserIndexMapping) -> StoreResult:
        # Keyed on user_id so a concurrent second writer merges into one row.
        return await self._store.upsert(self.table, mapping.to_row(), on_conflict="user_id")
