"""Logging configuration for vindex using structlog.

Console output for local runs, JSON lines for deployed workers. Modules
obtain a logger with ``get_logger(__name__)`` and bind per-run context
(``media_id``, ``project_id``, ``task_id``).
"""

from __future__ import annotations

import logging
import sys
import time
from typing import Any

import structlog

_NOISY_LOGGERS = ("httpx", "httpcore", "aiosqlite", "asyncio")


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "colored",
    log_timestamps: bool = True,
) -> None:
    """Configure structlog and route stdlib logging through it.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR)
        log_format: "colored" for terminals, "plain" for redirection,
            "json" for log collectors
        log_timestamps: Whether to include ISO timestamps
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso" if log_timestamps else None),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor
    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    elif log_format == "colored":
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level.upper()),
        force=True,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        BoundLogger with structured logging capabilities
    """
    return structlog.get_logger(name)


class Timer:
    """Context manager that logs an operation's start, end and duration.

    Example:
        with Timer(logger, "upload", media_id=item.id) as timer:
            result = await client.upload_video(index_id, item)
            timer.complete(task_id=result.task_id)
    """

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger,
        operation: str,
        **context: Any,
    ) -> None:
        self.logger = logger.bind(operation=operation, **context)
        self.operation = operation
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self._completed = False

    @property
    def elapsed_ms(self) -> float:
        end = self.end_time or time.monotonic()
        return round((end - self.start_time) * 1000, 2)

    def __enter__(self) -> Timer:
        self.start_time = time.monotonic()
        self.logger.debug(f"{self.operation}_started")
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.monotonic()
        if exc_type is not None:
            self.logger.error(
                f"{self.operation}_failed",
                duration_ms=self.elapsed_ms,
                error_type=exc_type.__name__,
                error=str(exc_val) if exc_val else None,
            )
        elif not self._completed:
            self.logger.info(f"{self.operation}_completed", duration_ms=self.elapsed_ms)

    def complete(self, **extra_context: Any) -> None:
        """Log completion now, with extra fields; suppresses the exit log."""
        self.end_time = time.monotonic()
        self._completed = True
        self.logger.info(
            f"{self.operation}_completed",
            duration_ms=self.elapsed_ms,
            **extra_context,
        )
