from __future__ import annotations

from typing import Protocol, runtime_checkable

from vindex.core.models import (
    AnalysisResult,
    MediaItem,
    ProviderIndex,
    SearchHit,
    TaskStatus,
    UploadResult,
    VideoInfo,
)


@runtime_checkable
class VideoProvider(Protocol):
    def ensure_configured(self) -> None: ...

    async def create_index(self, name: str) -> ProviderIndex: ...

    async def find_existing_index(self, name: str) -> ProviderIndex | None: ...

    async def upload_video(self, index_id: str, item: MediaItem) -> UploadResult: ...

    async def get_task_status(self, task_id: str) -> TaskStatus: ...

    async def get_video(self, index_id: str, video_id: str) -> VideoInfo: ...

    async def search(self, index_id: str, query: str) -> list[SearchHit]: ...

    async def analyze(self, video_id: str, prompt: str | None = None) -> AnalysisResult: ...

    async def aclose(self) -> None: ...
