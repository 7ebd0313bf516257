"""Retry configuration for vindex provider calls.

Only idempotent reads go through these decorators. Uploads, index creation
and task polling are single-shot: the polling loop fails fast on the first
error and the next poll or page load re-reads the provider.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import (
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity import (
    retry as tenacity_retry,
)

from vindex.core.logging_config import get_logger

logger = get_logger(__name__)


class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (1 disables retrying)
        min_wait_seconds: Minimum wait time between retries
        max_wait_seconds: Maximum wait time between retries
        exponential_multiplier: Multiplier for exponential backoff
    """

    def __init__(
        self,
        max_attempts: int = 3,
        min_wait_seconds: float = 1.0,
        max_wait_seconds: float = 30.0,
        exponential_multiplier: float = 1.0,
    ):
        self.max_attempts = max(1, max_attempts)
        self.min_wait_seconds = min_wait_seconds
        self.max_wait_seconds = max_wait_seconds
        self.exponential_multiplier = exponential_multiplier


# Transport-level failures worth another attempt on an idempotent request.
TRANSIENT_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.TransportError,
    ConnectionError,
    TimeoutError,
)


def is_transient(exc: BaseException) -> bool:
    """Return True for transport faults and provider errors flagged retryable."""
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        return True
    return bool(getattr(exc, "retryable", False))


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log retry attempts with structured context."""
    fn_name = retry_state.fn.__name__ if retry_state.fn else "unknown"
    exception = retry_state.outcome.exception() if retry_state.outcome else None

    logger.warning(
        "retry_attempt",
        function=fn_name,
        attempt=retry_state.attempt_number,
        wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        error=str(exception) if exception else None,
        error_type=type(exception).__name__ if exception else None,
    )


def create_retry_decorator(config: RetryConfig) -> Any:
    """Create a tenacity decorator that retries transient failures.

    Args:
        config: Retry configuration

    Returns:
        Configured retry decorator (re-raises the last error)
    """
    return tenacity_retry(
        stop=stop_after_attempt(config.max_attempts),
        wait=wait_exponential(
            multiplier=config.exponential_multiplier,
            min=config.min_wait_seconds,
            max=config.max_wait_seconds,
        ),
        retry=retry_if_exception(is_transient),
        before_sleep=log_retry_attempt,
        reraise=True,
    )
