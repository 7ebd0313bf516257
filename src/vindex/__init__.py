"""vindex package.

Asynchronous video indexing for a web video editor: uploads media items to
a video intelligence provider (Twelve Labs), tracks each provider task
through its lifecycle and keeps the status in a durable store.

Usage:
    from vindex import VideoIndexingService, VindexConfig

    async with VideoIndexingService(VindexConfig()) as service:
        handle = service.start_indexing(item, project_id, on_status, user_id=user_id)
        final_status = await handle.wait()

"""

from __future__ import annotations

from vindex.core import (
    IndexingStatus,
    MediaIndexingRecord,
    MediaItem,
    MediaKind,
    RetryConfig,
    VindexConfig,
    configure_logging,
    get_logger,
)
from vindex.indexing import IndexingHandle, IndexingOrchestrator, should_index
from vindex.presentation import StatusDisplay, present_status, tooltip
from vindex.service import VideoIndexingService

__version__ = "0.1.0"

__all__ = [
    "IndexingHandle",
    "IndexingOrchestrator",
    "IndexingStatus",
    "MediaIndexingRecord",
    "MediaItem",
    "MediaKind",
    "RetryConfig",
    "StatusDisplay",
    "VideoIndexingService",
    "VindexConfig",
    "__version__",
    "configure_logging",
    "get_logger",
    "present_status",
    "should_index",
    "tooltip",
]
