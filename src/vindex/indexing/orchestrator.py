"""Upload and polling orchestrator.

One asyncio task per media item: resolve the user's index, upload the bytes,
then poll the provider on a fixed delay until the task reaches a terminal
state. Every observed status change goes to the caller's callback and is
persisted best effort. Each run is owned by an ``IndexingHandle`` so it can
be cancelled when the media item goes away.
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from vindex.core.exceptions import IndexingError, UnauthenticatedError
from vindex.core.logging_config import Timer, get_logger
from vindex.core.models import (
    IndexingStatus,
    MediaIndexingRecord,
    MediaItem,
    StatusUpdate,
    TaskStatus,
)
from vindex.core.protocols import VideoProvider
from vindex.indexing.eligibility import should_index
from vindex.indexing.index_resolver import UserIndexResolver
from vindex.indexing.records import IndexingRecordRepository
from vindex.providers.twelvelabs import user_facing_message

if TYPE_CHECKING:
    import structlog

logger = get_logger(__name__)

StatusCallback = Callable[
    [IndexingStatus, str | None, str | None, str | None], Awaitable[None] | None
]
"""Receives ``(status, error_message, video_id, task_id)`` on each change."""

PROVIDER_FAILURE_MESSAGE = "Video indexing failed at the provider"


@dataclass
class IndexingHandle:
    """Owner-side view of one indexing run."""

    media_id: str
    project_id: str
    task_id: str | None = None
    video_id: str | None = None
    status: IndexingStatus = IndexingStatus.PENDING
    error_message: str | None = None
    updates: list[StatusUpdate] = field(default_factory=list)
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    def cancel(self) -> bool:
        """Stop the run; no further callbacks are delivered."""
        if self._task is None or self._task.done():
            return False
        return self._task.cancel()

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._task is not None and self._task.cancelled()

    async def wait(self) -> IndexingStatus:
        """Wait for the run to end and return the last observed status."""
        if self._task is not None:
            await asyncio.wait({self._task})
        return self.status


@dataclass
class _RunContext:
    """Mutable state of a single indexing run."""

    item: MediaItem
    project_id: str
    user_id: str
    handle: IndexingHandle
    callback: StatusCallback | None
    logger: structlog.stdlib.BoundLogger
    index_id: str | None = None
    record: MediaIndexingRecord | None = None
    polls: int = 0


class IndexingOrchestrator:
    """Drives upload and status polling for eligible media items."""

    def __init__(
        self,
        provider: VideoProvider,
        records: IndexingRecordRepository | None,
        resolver: UserIndexResolver,
        *,
        poll_initial_delay: float = 2.0,
        poll_interval: float = 10.0,
        max_poll_attempts: int = 360,
    ) -> None:
        self._provider = provider
        self._records = records
        self._resolver = resolver
        self._poll_initial_delay = poll_initial_delay
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._handles: dict[str, IndexingHandle] = {}

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def start_indexing(
        self,
        media_item: MediaItem,
        project_id: str,
        on_status_update: StatusCallback | None = None,
        *,
        user_id: str,
    ) -> IndexingHandle | None:
        """Start indexing ``media_item`` in the background.

        Must be called from a running event loop. Returns ``None`` without
        any callback when the item is not eligible or carries no content, and
        the existing handle when the item is already being indexed.

        Raises:
            UnauthenticatedError: If ``user_id`` is empty.
            ConfigurationError: If the provider has no credentials.
        """
        if not should_index(media_item):
            logger.debug("indexing_skipped", media_id=media_item.id, reason="ineligible")
            return None
        if not media_item.has_content:
            logger.debug("indexing_skipped", media_id=media_item.id, reason="no_content")
            return None

        existing = self._handles.get(media_item.id)
        if existing is not None and not existing.done():
            logger.debug("indexing_already_active", media_id=media_item.id)
            return existing

        if not user_id:
            raise UnauthenticatedError()
        self._provider.ensure_configured()

        handle = IndexingHandle(media_id=media_item.id, project_id=project_id)
        ctx = _RunContext(
            item=media_item,
            project_id=project_id,
            user_id=user_id,
            handle=handle,
            callback=on_status_update,
            logger=logger.bind(
                media_id=media_item.id, project_id=project_id, operation="index_media"
            ),
        )
        task = asyncio.get_running_loop().create_task(
            self._run(ctx), name=f"vindex-index-{media_item.id}"
        )
        handle._task = task
        self._handles[media_item.id] = handle
        task.add_done_callback(lambda _: self._forget(handle))
        return handle

    def get_handle(self, media_id: str) -> IndexingHandle | None:
        return self._handles.get(media_id)

    @property
    def active_media_ids(self) -> list[str]:
        return [media_id for media_id, handle in self._handles.items() if not handle.done()]

    def cancel(self, media_id: str) -> bool:
        """Cancel the run for ``media_id``; False if none is active."""
        handle = self._handles.get(media_id)
        if handle is None:
            return False
        cancelled = handle.cancel()
        if cancelled:
            logger.info("indexing_cancelled", media_id=media_id)
        return cancelled

    def cancel_all(self) -> int:
        return sum(1 for media_id in list(self._handles) if self.cancel(media_id))

    async def aclose(self) -> None:
        """Cancel every active run and wait for them to unwind."""
        handles = list(self._handles.values())
        self.cancel_all()
        if handles:
            await asyncio.gather(*(h.wait() for h in handles))

    def _forget(self, handle: IndexingHandle) -> None:
        if self._handles.get(handle.media_id) is handle:
            del self._handles[handle.media_id]

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(self, ctx: _RunContext) -> None:
        ctx.logger.info("indexing_started", user_id=ctx.user_id)
        try:
            await self._upload(ctx)
            await self._poll(ctx)
        except IndexingError as e:
            ctx.logger.error("indexing_failed", stage=e.stage, error=str(e))
            await self._finish_failed(ctx, str(e))
        except Exception as e:
            ctx.logger.exception("indexing_crashed", error_type=type(e).__name__)
            await self._finish_failed(ctx, str(e) or type(e).__name__)

    async def _upload(self, ctx: _RunContext) -> None:
        try:
            mapping = await self._resolver.resolve(ctx.user_id)
        except Exception as e:
            raise IndexingError(
                user_facing_message(e), stage="resolve_index", media_id=ctx.item.id
            ) from e
        ctx.index_id = mapping.index_id

        try:
            with Timer(ctx.logger, "upload", index_id=mapping.index_id) as timer:
                result = await self._provider.upload_video(mapping.index_id, ctx.item)
                timer.complete(task_id=result.task_id, video_id=result.video_id)
        except Exception as e:
            raise IndexingError(user_facing_message(e), stage="upload", media_id=ctx.item.id) from e

        ctx.handle.task_id = result.task_id
        ctx.handle.video_id = result.video_id
        ctx.logger = ctx.logger.bind(task_id=result.task_id)
        ctx.record = MediaIndexingRecord(
            project_id=ctx.project_id,
            media_id=ctx.item.id,
            user_id=ctx.user_id,
            index_id=mapping.index_id,
            video_id=result.video_id,
            task_id=result.task_id,
            status=IndexingStatus.UPLOADING,
            filename=ctx.item.filename,
        )
        await self._emit(ctx, IndexingStatus.UPLOADING)
        await self._persist(ctx)

    async def _poll(self, ctx: _RunContext) -> None:
        """Fixed-delay polling until a terminal status is observed."""
        assert ctx.record is not None and ctx.record.task_id is not None
        task_id = ctx.record.task_id

        await asyncio.sleep(self._poll_initial_delay)
        while True:
            if self._max_poll_attempts and ctx.polls >= self._max_poll_attempts:
                raise IndexingError(
                    f"Indexing timed out after {ctx.polls} status checks",
                    stage="poll",
                    media_id=ctx.item.id,
                )
            ctx.polls += 1
            try:
                observed = await self._provider.get_task_status(task_id)
            except Exception as e:
                ctx.logger.warning(
                    "poll_failed", attempt=ctx.polls, error=str(e), error_type=type(e).__name__
                )
                raise IndexingError(
                    user_facing_message(e), stage="poll", media_id=ctx.item.id
                ) from e

            ctx.logger.debug("poll_completed", attempt=ctx.polls, status=observed.status.value)
            await self._observe(ctx, observed)
            if observed.status.is_terminal:
                ctx.logger.info(
                    "indexing_finished", status=observed.status.value, polls=ctx.polls
                )
                return
            await asyncio.sleep(self._poll_interval)

    async def _observe(self, ctx: _RunContext, observed: TaskStatus) -> None:
        record = ctx.record
        assert record is not None
        status = observed.status

        if observed.video_id and not record.video_id:
            record.video_id = observed.video_id
            ctx.handle.video_id = observed.video_id
        for name, value in observed.metadata_fields().items():
            setattr(record, name, value)
        if status == IndexingStatus.READY:
            await self._enrich_ready(ctx)

        error_message = PROVIDER_FAILURE_MESSAGE if status == IndexingStatus.FAILED else None
        self._advance(ctx, status, error_message)
        await self._emit(ctx, status, error_message)
        await self._persist(ctx)

    async def _enrich_ready(self, ctx: _RunContext) -> None:
        """Fetch video metadata when the ready task carried no stream data."""
        record = ctx.record
        assert record is not None
        if record.video_url or not record.video_id:
            return
        try:
            info = await self._provider.get_video(record.index_id, record.video_id)
        except Exception as e:
            ctx.logger.warning("video_metadata_fetch_failed", error=str(e))
            return
        for name, value in info.metadata_fields().items():
            setattr(record, name, value)

    def _advance(
        self, ctx: _RunContext, status: IndexingStatus, error_message: str | None
    ) -> None:
        """Move the record forward; backwards or unmapped reports keep it."""
        record = ctx.record
        assert record is not None
        current_rank = record.status.rank
        if status.rank is None or (current_rank is not None and status.rank < current_rank):
            ctx.logger.debug(
                "status_not_persisted",
                reported=status.value,
                persisted=record.status.value,
            )
            return
        record.status = status
        record.error_message = error_message

    async def _finish_failed(self, ctx: _RunContext, message: str) -> None:
        if ctx.record is None and ctx.index_id is not None:
            ctx.record = MediaIndexingRecord(
                project_id=ctx.project_id,
                media_id=ctx.item.id,
                user_id=ctx.user_id,
                index_id=ctx.index_id,
                filename=ctx.item.filename,
            )
        if ctx.record is not None:
            ctx.record.status = IndexingStatus.FAILED
            ctx.record.error_message = message
        await self._emit(ctx, IndexingStatus.FAILED, message)
        await self._persist(ctx)

    # ------------------------------------------------------------------
    # Side channels
    # ------------------------------------------------------------------

    async def _emit(
        self, ctx: _RunContext, status: IndexingStatus, error_message: str | None = None
    ) -> None:
        """Deliver a status change; repeats of the last delivered status are dropped."""
        handle = ctx.handle
        if handle.updates and handle.updates[-1].status == status:
            return
        update = StatusUpdate(
            media_id=handle.media_id,
            status=status,
            error_message=error_message,
            video_id=handle.video_id,
            task_id=handle.task_id,
        )
        handle.status = status
        handle.error_message = error_message
        handle.updates.append(update)
        ctx.logger.info("status_changed", status=status.value, error=error_message)

        if ctx.callback is None:
            return
        try:
            result = ctx.callback(status, error_message, handle.video_id, handle.task_id)
            if inspect.isawaitable(result):
                await result
        except Exception:
            ctx.logger.exception("status_callback_failed", status=status.value)

    async def _persist(self, ctx: _RunContext) -> None:
        if self._records is None or ctx.record is None:
            return
        try:
            result = await self._records.save(ctx.record)
        except Exception as e:
            # Best effort: a store fault never ends the run.
            ctx.logger.warning(
                "persist_failed",
                status=ctx.record.status.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            return
        if not result.ok:
            ctx.logger.warning(
                "persist_failed", status=ctx.record.status.value, error=result.error
            )
