"""Protocols implemented by vindex providers and stores."""

from .status_store import Row, StatusStore, StoreResult
from .video_provider import VideoProvider

__all__ = [
    "Row",
    "StatusStore",
    "StoreResult",
    "VideoProvider",
]
