"""Service facade wiring the provider, the status store and the orchestrator.

This is the entry point for hosts (web handlers, the CLI): it owns the
provider client, the store connection and the per-service index cache.
"""

from __future__ import annotations

from typing import Any

from vindex.core import (
    AnalysisResult,
    MediaItem,
    RestoredStatus,
    SearchHit,
    StatusStore,
    StoreError,
    TaskStatus,
    UnauthenticatedError,
    UserIndexMapping,
    VideoProvider,
    VindexConfig,
    configure_logging,
    get_logger,
)
from vindex.core.provider_factory import create_status_store, create_video_provider
from vindex.indexing import (
    IndexCache,
    IndexingHandle,
    IndexingOrchestrator,
    IndexingRecordRepository,
    StatusCallback,
    UserIndexRepository,
    UserIndexResolver,
)

logger = get_logger(__name__)


class VideoIndexingService:
    """Indexes media items and answers status, search and analysis requests."""

    def __init__(
        self,
        config: VindexConfig | None = None,
        *,
        provider: VideoProvider | None = None,
        store: StatusStore | None = None,
        index_cache: IndexCache | None = None,
    ) -> None:
        """Initialize the service with config and optional overrides.

        Args:
            config: vindex configuration. Defaults to ``VindexConfig()``.
            provider: Custom video provider. Defaults to the Twelve Labs client.
            store: Custom status store. Defaults based on config.store_provider.
            index_cache: User index cache to share between services. Each
                service gets its own cache otherwise.
        """
        self._config = config or VindexConfig()

        configure_logging(
            log_level=self._config.log_level,
            log_format=self._config.log_format,
            log_timestamps=self._config.log_timestamps,
        )

        self._provider = provider if provider is not None else create_video_provider(self._config)
        self._store = store if store is not None else create_status_store(self._config)

        self.records = IndexingRecordRepository(self._store, self._config.records_table)
        self.user_indexes = UserIndexRepository(self._store, self._config.user_indexes_table)
        self.resolver = UserIndexResolver(
            self._provider,
            self.user_indexes,
            name_for=self._config.expected_index_name,
            cache=index_cache,
        )
        self.orchestrator = IndexingOrchestrator(
            self._provider,
            self.records,
            self.resolver,
            poll_initial_delay=self._config.poll_initial_delay_seconds,
            poll_interval=self._config.poll_interval_seconds,
            max_poll_attempts=self._config.max_poll_attempts,
        )

    @property
    def config(self) -> VindexConfig:
        return self._config

    @property
    def provider(self) -> VideoProvider:
        return self._provider

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def start_indexing(
        self,
        media_item: MediaItem,
        project_id: str,
        on_status_update: StatusCallback | None = None,
        *,
        user_id: str,
    ) -> IndexingHandle | None:
        """Start indexing in the background; see ``IndexingOrchestrator.start_indexing``."""
        return self.orchestrator.start_indexing(
            media_item, project_id, on_status_update, user_id=user_id
        )

    def cancel_indexing(self, media_id: str) -> bool:
        return self.orchestrator.cancel(media_id)

    async def get_user_index(self, user_id: str) -> UserIndexMapping:
        """Return the user's index, creating it on first use."""
        if not user_id:
            raise UnauthenticatedError()
        self._provider.ensure_configured()
        return await self.resolver.resolve(user_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def get_task_status(
        self,
        task_id: str,
        *,
        project_id: str | None = None,
        media_id: str | None = None,
    ) -> TaskStatus:
        """Fetch a task's status once.

        With ``project_id`` and ``media_id`` the persisted record is brought
        up to date as well (best effort, never moving its status backwards).

        Raises:
            ValueError: If ``task_id`` is empty.
            ProviderAPIError: If the provider call fails.
        """
        if not task_id:
            raise ValueError("task_id is required")
        self._provider.ensure_configured()
        observed = await self._provider.get_task_status(task_id)
        if project_id and media_id:
            await self._reconcile(project_id, media_id, observed)
        return observed

    async def _reconcile(self, project_id: str, media_id: str, observed: TaskStatus) -> None:
        reconcile_logger = logger.bind(
            project_id=project_id, media_id=media_id, task_id=observed.task_id
        )
        fields: dict[str, Any] = observed.metadata_fields()
        if observed.video_id:
            fields["video_id"] = observed.video_id

        try:
            current = await self.records.get(project_id, media_id)
        except StoreError as e:
            reconcile_logger.warning("record_lookup_failed", error=str(e))
            current = None
        if current is None:
            reconcile_logger.debug("record_not_found")
            return

        status = observed.status
        current_rank = current.status.rank
        if status.rank is not None and (current_rank is None or status.rank >= current_rank):
            fields["status"] = status
        if not fields:
            return
        result = await self.records.update_status(project_id, media_id, **fields)
        if not result.ok:
            reconcile_logger.warning("persist_failed", error=result.error)

    async def restore_status(
        self, project_id: str, media_ids: list[str]
    ) -> dict[str, RestoredStatus]:
        """Persisted status of each known media item of a project.

        Raises:
            ValueError: If ``project_id`` or ``media_ids`` is empty.
            StoreError: If the store cannot be read.
        """
        if not project_id or not media_ids:
            raise ValueError("project_id and media_ids are required")
        return await self.records.restore(project_id, media_ids)

    # ------------------------------------------------------------------
    # Search and analysis
    # ------------------------------------------------------------------

    async def search(self, user_id: str, query: str) -> list[SearchHit]:
        """Search the user's index with a text query."""
        if not query.strip():
            raise ValueError("query is required")
        mapping = await self.get_user_index(user_id)
        hits = await self._provider.search(mapping.index_id, query)
        logger.info("search_completed", user_id=user_id, hits=len(hits))
        return hits

    async def analyze(
        self, user_id: str, video_id: str, prompt: str | None = None
    ) -> AnalysisResult:
        """Gist, summary, chapters and highlights of a video, or a prompt's answer."""
        if not user_id:
            raise UnauthenticatedError()
        if not video_id:
            raise ValueError("video_id is required")
        self._provider.ensure_configured()
        return await self._provider.analyze(video_id, prompt)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Cancel active runs and release the provider and store connections.

        Safe to call multiple times (idempotent).
        """
        await self.orchestrator.aclose()
        await self._provider.aclose()
        await self._store.close()

    async def __aenter__(self) -> VideoIndexingService:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


__all__ = ["VideoIndexingService"]
