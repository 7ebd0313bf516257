"""Eligibility guard for background indexing."""

from __future__ import annotations

from vindex.core.models import MediaItem, MediaKind


def should_index(item: MediaItem) -> bool:
    """Return True iff ``item`` may be submitted for indexing.

    Only persisted video items that were never submitted before (no
    provider task id) qualify.
    """
    return item.kind == MediaKind.VIDEO and not item.ephemeral and not item.task_id
