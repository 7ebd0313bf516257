"""Structured exception hierarchy for vindex.

Exception Hierarchy:
    VindexError (base)
    ├── ConfigurationError
    ├── UnauthenticatedError
    ├── ProviderError
    │   └── ProviderAPIError
    ├── StoreError
    └── IndexingError

Usage:
    from vindex.core.exceptions import ProviderAPIError

    try:
        await client.upload_video(index_id, item)
    except ProviderAPIError as e:
        logger.error("upload_failed", status=e.status, code=e.code)
"""

from __future__ import annotations


class VindexError(Exception):
    """Base exception class for all vindex errors.

    Catching this class catches every error raised by the indexing
    pipeline, its provider client and its status stores.
    """

    pass


class ConfigurationError(VindexError):
    """Exception raised when required configuration is missing or invalid.

    Raised synchronously at call time (e.g. no provider API key) and never
    retried.

    Example:
        raise ConfigurationError(
            "VINDEX_TWELVELABS_API_KEY is required but not set."
        )
    """

    def __init__(self, message: str) -> None:
        """Initialize ConfigurationError."""
        super().__init__(message)


class UnauthenticatedError(VindexError):
    """Exception raised when an operation needs a user id and none was given.

    The user id is opaque to vindex; only its presence is checked.
    """

    def __init__(self, message: str = "Unauthorized") -> None:
        """Initialize UnauthenticatedError."""
        super().__init__(message)


class ProviderError(VindexError):
    """Exception raised when an external provider fails.

    Args:
        message: Human-readable error message.
        provider: The name of the provider that failed (e.g., "twelvelabs").
        retryable: Whether the error is transient and can be retried.
            Defaults to False.

    Attributes:
        provider: The name of the failed provider.
        retryable: Whether the error can be retried.
    """

    def __init__(self, message: str, provider: str, retryable: bool = False) -> None:
        """Initialize ProviderError with context."""
        super().__init__(message)
        self.provider = provider
        self.retryable = retryable


class ProviderAPIError(ProviderError):
    """Typed error for the video intelligence provider's HTTP API.

    Carries the HTTP status the provider answered with (or a synthetic one:
    502 for malformed payloads, 503 for transport failures) and the
    provider's machine-readable error code when it sent one.

    Args:
        message: Human-readable error message.
        status: HTTP status code to propagate to callers.
        code: Provider error code (e.g. "video_duration_too_short").
        provider: Provider name. Defaults to "twelvelabs".
        retryable: Whether the error is transient.

    Attributes:
        message: The error message.
        status: The HTTP status code.
        code: The provider error code, if any.
    """

    def __init__(
        self,
        message: str,
        status: int,
        code: str | None = None,
        *,
        provider: str = "twelvelabs",
        retryable: bool = False,
    ) -> None:
        """Initialize ProviderAPIError with the provider's status."""
        super().__init__(message, provider=provider, retryable=retryable)
        self.message = message
        self.status = status
        self.code = code

    def to_dict(self) -> dict[str, object]:
        """Return the ``{message, status}`` shape exposed to callers."""
        return {"message": self.message, "status": self.status}


class StoreError(VindexError):
    """Exception raised when a status store transport call fails.

    "Not found" is not an error: lookups return ``None`` or an empty list.

    Args:
        message: Human-readable error message.
        table: The table the operation targeted, if known.
    """

    def __init__(self, message: str, table: str | None = None) -> None:
        """Initialize StoreError."""
        super().__init__(message)
        self.table = table


class IndexingError(VindexError):
    """Exception raised when an indexing run cannot proceed.

    Args:
        message: Human-readable error message.
        stage: The orchestration stage that failed ("resolve_index",
            "upload", "poll").
        media_id: The media item being indexed, if known.
    """

    def __init__(self, message: str, stage: str, media_id: str | None = None) -> None:
        """Initialize IndexingError with context."""
        super().__init__(message)
        self.stage = stage
        self.media_id = media_id


__all__ = [
    "ConfigurationError",
    "IndexingError",
    "ProviderAPIError",
    "ProviderError",
    "StoreError",
    "UnauthenticatedError",
    "VindexError",
]
