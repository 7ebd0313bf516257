"""Indexing orchestration: eligibility, index resolution, upload and polling."""

from __future__ import annotations

from vindex.indexing.eligibility import should_index
from vindex.indexing.index_resolver import IndexCache, UserIndexResolver
from vindex.indexing.orchestrator import IndexingHandle, IndexingOrchestrator, StatusCallback
from vindex.indexing.records import IndexingRecordRepository, UserIndexRepository

__all__ = [
    "IndexCache",
    "IndexingHandle",
    "IndexingOrchestrator",
    "IndexingRecordRepository",
    "StatusCallback",
    "UserIndexRepository",
    "UserIndexResolver",
    "should_index",
]
