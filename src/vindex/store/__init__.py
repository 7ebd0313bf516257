"""Durable status stores for indexing records."""

from __future__ import annotations

from vindex.store.postgrest import PostgrestStatusStore
from vindex.store.sqlite import SqliteStatusStore

__all__ = [
    "PostgrestStatusStore",
    "SqliteStatusStore",
]
