"""Shared pytest fixtures for the vindex test suite."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from vindex.core.config import VindexConfig
from vindex.core.models import (
    AnalysisResult,
    HlsInfo,
    IndexingStatus,
    MediaItem,
    MediaKind,
    ProviderIndex,
    SystemMetadata,
    TaskStatus,
    UploadResult,
    VideoInfo,
)
from vindex.indexing import (
    IndexingOrchestrator,
    IndexingRecordRepository,
    UserIndexRepository,
    UserIndexResolver,
)
from vindex.store.sqlite import SqliteStatusStore

# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Create a temporary database file path.

    Returns:
        Path: Path to a temporary SQLite database file.
    """
    return tmp_path / "vindex.db"


@pytest.fixture
def vindex_config(tmp_db_path: Path) -> VindexConfig:
    """Create a config with no polling delays and no retries.

    Returns:
        VindexConfig: Configuration isolated from the environment's .env file.
    """
    return VindexConfig(
        _env_file=None,
        twelvelabs_api_key="tlk_test_key_0123456789",
        store_provider="sqlite",
        database_path=str(tmp_db_path),
        poll_initial_delay_seconds=0.0,
        poll_interval_seconds=0.0,
        retry_max_attempts=1,
        log_format="plain",
    )


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
async def memory_store() -> AsyncGenerator[SqliteStatusStore, None]:
    """In-memory SQLite status store, closed after the test."""
    store = SqliteStatusStore(":memory:")
    await store.initialize()
    yield store
    await store.close()


@pytest.fixture
def records(memory_store: SqliteStatusStore) -> IndexingRecordRepository:
    return IndexingRecordRepository(memory_store)


@pytest.fixture
def user_indexes(memory_store: SqliteStatusStore) -> UserIndexRepository:
    return UserIndexRepository(memory_store)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def video_item() -> MediaItem:
    """Create an eligible video media item.

    Returns:
        MediaItem: A persisted (non-ephemeral) video with in-memory content.
    """
    return MediaItem(
        id="media-1",
        name="clip.mp4",
        kind=MediaKind.VIDEO,
        content=b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64,
        content_type="video/mp4",
    )


@pytest.fixture
def make_task_status() -> Callable[..., TaskStatus]:
    """Factory for provider task observations.

    ``ready`` observations carry metadata and stream URLs unless told otherwise.
    """

    def factory(
        status: str,
        *,
        task_id: str = "task-1",
        video_id: str | None = "vid-1",
        with_metadata: bool | None = None,
    ) -> TaskStatus:
        parsed = IndexingStatus.from_provider(status)
        if with_metadata is None:
            with_metadata = parsed == IndexingStatus.READY
        return TaskStatus(
            task_id=task_id,
            video_id=video_id,
            index_id="idx-1",
            status=parsed,
            raw_status=status,
            system_metadata=(
                SystemMetadata(duration=42.5, filename="clip.mp4", width=1920, height=1080)
                if with_metadata
                else None
            ),
            hls=(
                HlsInfo(
                    video_url="https://stream.example.com/vid-1.m3u8",
                    thumbnail_urls=["https://stream.example.com/vid-1-0.jpg"],
                    status="COMPLETE",
                )
                if with_metadata
                else None
            ),
        )

    return factory


class StatusRecorder:
    """Status callback that records every delivery."""

    def __init__(self) -> None:
        self.calls: list[tuple[IndexingStatus, str | None, str | None, str | None]] = []

    def __call__(
        self,
        status: IndexingStatus,
        error_message: str | None,
        video_id: str | None,
        task_id: str | None,
    ) -> None:
        self.calls.append((status, error_message, video_id, task_id))

    @property
    def statuses(self) -> list[IndexingStatus]:
        return [call[0] for call in self.calls]


@pytest.fixture
def recorder() -> StatusRecorder:
    return StatusRecorder()


# ============================================================================
# Mock Provider Fixtures
# ============================================================================


@pytest.fixture
def mock_video_provider() -> MagicMock:
    """Create a mock video provider.

    Returns:
        MagicMock: Provider with async methods returning canned values. Tests
            set ``get_task_status.side_effect`` to script the task lifecycle.
    """
    provider = MagicMock()
    provider.ensure_configured = MagicMock(return_value=None)
    provider.find_existing_index = AsyncMock(return_value=None)
    provider.create_index = AsyncMock(
        side_effect=lambda name: ProviderIndex(id="idx-1", name=name)
    )
    provider.upload_video = AsyncMock(
        return_value=UploadResult(task_id="task-1", video_id="vid-1")
    )
    provider.get_task_status = AsyncMock()
    provider.get_video = AsyncMock(return_value=VideoInfo(video_id="vid-1", index_id="idx-1"))
    provider.search = AsyncMock(return_value=[])
    provider.analyze = AsyncMock(return_value=AnalysisResult(title="Sample"))
    provider.aclose = AsyncMock()
    return provider


# ============================================================================
# Orchestration Fixtures
# ============================================================================


@pytest.fixture
def resolver(mock_video_provider: MagicMock, user_indexes: UserIndexRepository) -> UserIndexResolver:
    return UserIndexResolver(
        mock_video_provider,
        user_indexes,
        name_for=lambda user_id: f"opencut_user_{user_id}",
    )


@pytest.fixture
def orchestrator(
    mock_video_provider: MagicMock,
    records: IndexingRecordRepository,
    resolver: UserIndexResolver,
) -> IndexingOrchestrator:
    """Orchestrator polling without delays."""
    return IndexingOrchestrator(
        mock_video_provider,
        records,
        resolver,
        poll_initial_delay=0.0,
        poll_interval=0.0,
        max_poll_attempts=20,
    )
