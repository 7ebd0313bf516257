"""Core vindex components.

This module contains the configuration, exceptions, models, protocols and
logging helpers shared across all vindex functionality.
"""

from __future__ import annotations

from vindex.core.config import VindexConfig
from vindex.core.exceptions import (
    ConfigurationError,
    IndexingError,
    ProviderAPIError,
    ProviderError,
    StoreError,
    UnauthenticatedError,
    VindexError,
)
from vindex.core.logging_config import configure_logging, get_logger
from vindex.core.models import (
    AnalysisResult,
    IndexingStatus,
    MediaIndexingRecord,
    MediaItem,
    MediaKind,
    RestoredStatus,
    SearchHit,
    TaskStatus,
    UserIndexMapping,
)
from vindex.core.protocols import StatusStore, StoreResult, VideoProvider
from vindex.core.retry_config import RetryConfig, create_retry_decorator

__all__ = [
    # Models
    "AnalysisResult",
    # Exceptions
    "ConfigurationError",
    "IndexingError",
    "IndexingStatus",
    "MediaIndexingRecord",
    "MediaItem",
    "MediaKind",
    "ProviderAPIError",
    "ProviderError",
    "RestoredStatus",
    "RetryConfig",
    "SearchHit",
    # Protocols
    "StatusStore",
    "StoreError",
    "StoreResult",
    "TaskStatus",
    "UnauthenticatedError",
    "UserIndexMapping",
    "VideoProvider",
    # Config
    "VindexConfig",
    "VindexError",
    # Logging
    "configure_logging",
    "create_retry_decorator",
    "get_logger",
]
