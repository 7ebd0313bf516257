"""Local status store backed by async SQLite.

Rows are kept as JSON documents per logical table, which lets the store
serve the same verbs as the PostgREST store (equality filters, ``in``
filters, upsert on a conflict target, partial patch) without a schema per
table. New rows get the table defaults of the hosted schema: a UUID ``id``
and ``created_at``/``updated_at`` timestamps.
"""

from __future__ import annotations

import asyncio
import json
import re
import uuid
from pathlib import Path
from typing import Any

import aiosqlite

from vindex.core.exceptions import StoreError
from vindex.core.logging_config import get_logger
from vindex.core.models import utc_now_iso
from vindex.core.protocols import Row, StoreResult

logger = get_logger(__name__)

_COLUMN_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _column_expr(column: str) -> str:
    if not _COLUMN_RE.match(column):
        raise StoreError(f"invalid column name: {column!r}")
    return f"CAST(json_extract(data, '$.{column}') AS TEXT)"


class SqliteStatusStore:
    """Status store persisted in a local SQLite file (or ``:memory:``)."""

    _provider_name: str = "sqlite"

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._db: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._logger = logger.bind(store=self._provider_name, db_path=self.db_path)

    async def initialize(self) -> None:
        """Open the connection and create the documents table."""
        if self._db is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(self.db_path)
        if self.db_path != ":memory:":
            await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("""
            CREATE TABLE IF NOT EXISTS documents (
                table_name TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                data TEXT NOT NULL,
                PRIMARY KEY (table_name, doc_id)
            )
        """)
        await self._db.commit()
        self._logger.debug("sqlite_store_initialized")

    async def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        assert self._db is not None
        return self._db

    async def _find(
        self,
        table: str,
        filters: dict[str, str],
        *,
        in_column: str | None = None,
        in_values: list[str] | None = None,
        limit: int | None = None,
    ) -> list[tuple[str, Row]]:
        clauses = ["table_name = ?"]
        params: list[Any] = [table]
        for column, value in filters.items():
            clauses.append(f"{_column_expr(column)} = ?")
            params.append(str(value))
        if in_column is not None and in_values:
            placeholders = ", ".join("?" for _ in in_values)
            clauses.append(f"{_column_expr(in_column)} IN ({placeholders})")
            params.extend(str(v) for v in in_values)

        sql = f"SELECT doc_id, data FROM documents WHERE {' AND '.join(clauses)} ORDER BY rowid"
        if limit is not None:
            sql += f" LIMIT {int(limit)}"

        db = await self._conn()
        async with db.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
        return [(row[0], json.loads(row[1])) for row in rows]

    async def _insert_doc(self, table: str, row: Row) -> Row:
        now = utc_now_iso()
        doc = {"id": str(uuid.uuid4()), "created_at": now, "updated_at": now, **row}
        db = await self._conn()
        await db.execute(
            "INSERT INTO documents (table_name, doc_id, data) VALUES (?, ?, ?)",
            (table, str(doc["id"]), json.dumps(doc)),
        )
        return doc

    async def _replace_doc(self, table: str, doc_id: str, doc: Row) -> None:
        db = await self._conn()
        await db.execute(
            "UPDATE documents SET data = ? WHERE table_name = ? AND doc_id = ?",
            (json.dumps(doc), table, doc_id),
        )

    # ------------------------------------------------------------------
    # StatusStore verbs
    # ------------------------------------------------------------------

    async def select_one(self, table: str, filters: dict[str, str]) -> Row | None:
        try:
            async with self._lock:
                found = await self._find(table, filters, limit=1)
        except aiosqlite.Error as e:
            raise StoreError(f"select on {table} failed: {e}", table=table) from e
        return found[0][1] if found else None

    async def select_in(
        self, table: str, filters: dict[str, str], column: str, values: list[str]
    ) -> list[Row]:
        if not values:
            return []
        try:
            async with self._lock:
                found = await self._find(table, filters, in_column=column, in_values=values)
        except aiosqlite.Error as e:
            raise StoreError(f"select on {table} failed: {e}", table=table) from e
        return [doc for _, doc in found]

    async def insert(self, table: str, rows: Row | list[Row]) -> StoreResult:
        batch = rows if isinstance(rows, list) else [rows]
        try:
            async with self._lock:
                inserted = [await self._insert_doc(table, row) for row in batch]
                await (await self._conn()).commit()
        except (aiosqlite.Error, StoreError) as e:
            self._logger.warning(
                "store_write_failed", operation="insert", table=table, error=str(e)
            )
            return StoreResult.failure(f"insert into {table} failed: {e}")
        return StoreResult.success(inserted)

    async def upsert(
        self, table: str, rows: Row | list[Row], on_conflict: str | None = None
    ) -> StoreResult:
        batch = rows if isinstance(rows, list) else [rows]
        conflict_columns = [c.strip() for c in (on_conflict or "id").split(",") if c.strip()]
        written: list[Row] = []
        try:
            async with self._lock:
                for row in batch:
                    key = {c: row[c] for c in conflict_columns if row.get(c) is not None}
                    existing = (
                        await self._find(table, key, limit=1)
                        if len(key) == len(conflict_columns)
                        else []
                    )
                    if existing:
                        doc_id, current = existing[0]
                        merged = {**current, **row, "id": current["id"]}
                        if "updated_at" not in row:
                            merged["updated_at"] = utc_now_iso()
                        await self._replace_doc(table, doc_id, merged)
                        written.append(merged)
                    else:
                        written.append(await self._insert_doc(table, row))
                await (await self._conn()).commit()
        except (aiosqlite.Error, StoreError) as e:
            self._logger.warning(
                "store_write_failed", operation="upsert", table=table, error=str(e)
            )
            return StoreResult.failure(f"upsert into {table} failed: {e}")
        return StoreResult.success(written)

    async def update(self, table: str, patch: Row, filters: dict[str, str]) -> StoreResult:
        updated: list[Row] = []
        try:
            async with self._lock:
                for doc_id, current in await self._find(table, filters):
                    merged = {**current, **patch, "id": current["id"]}
                    await self._replace_doc(table, doc_id, merged)
                    updated.append(merged)
                await (await self._conn()).commit()
        except (aiosqlite.Error, StoreError) as e:
            self._logger.warning(
                "store_write_failed", operation="update", table=table, error=str(e)
            )
            return StoreResult.failure(f"update of {table} failed: {e}")
        return StoreResult.success(updated)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def __aenter__(self) -> SqliteStatusStore:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
