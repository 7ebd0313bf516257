"""Pydantic data models for vindex."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """Current UTC time in ISO 8601 format."""
    return datetime.now(UTC).isoformat()


class IndexingStatus(StrEnum):
    """Lifecycle of one media item at the video intelligence provider.

    ``UNKNOWN`` stands for any provider value outside this enumeration.
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    VALIDATING = "validating"
    QUEUED = "queued"
    INDEXING = "indexing"
    READY = "ready"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @classmethod
    def from_provider(cls, raw: str | None) -> IndexingStatus:
        """Map a provider-reported status onto the enumeration.

        Exact, case-insensitive match on the trimmed value; everything else
        (including ``None``) is ``UNKNOWN``.
        """
        if not raw:
            return cls.UNKNOWN
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.UNKNOWN

    @property
    def is_terminal(self) -> bool:
        return self in (IndexingStatus.READY, IndexingStatus.FAILED)

    @property
    def rank(self) -> int | None:
        """Position along the pipeline; terminal states rank highest."""
        return _STATUS_RANK.get(self)


_STATUS_RANK: dict[IndexingStatus, int] = {
    IndexingStatus.PENDING: 0,
    IndexingStatus.UPLOADING: 1,
    IndexingStatus.VALIDATING: 2,
    IndexingStatus.QUEUED: 3,
    IndexingStatus.INDEXING: 4,
    IndexingStatus.READY: 5,
    IndexingStatus.FAILED: 5,
}

TERMINAL_STATUSES: frozenset[IndexingStatus] = frozenset(
    {IndexingStatus.READY, IndexingStatus.FAILED}
)


class MediaKind(StrEnum):
    """Kinds of items in the editor's media catalog."""

    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"


class MediaItem(BaseModel):
    """A media item from the local catalog."""

    id: str
    name: str = ""
    kind: MediaKind
    ephemeral: bool = False
    content: bytes | None = Field(default=None, repr=False)
    path: Path | None = None
    content_type: str = "video/mp4"
    task_id: str | None = None

    @property
    def has_content(self) -> bool:
        return self.content is not None or self.path is not None

    @property
    def filename(self) -> str:
        if self.name:
            return self.name
        if self.path is not None:
            return self.path.name
        return f"{self.id}.mp4"

    def read_bytes(self) -> bytes:
        """Return the item's binary content, reading ``path`` if needed."""
        if self.content is not None:
            return self.content
        if self.path is None:
            raise ValueError(f"media item {self.id} has no content")
        return self.path.read_bytes()


class MediaIndexingRecord(BaseModel):
    """Persisted indexing state for one (project, media) pair."""

    model_config = ConfigDict(validate_assignment=True)

    project_id: str
    media_id: str
    user_id: str | None = None
    index_id: str
    video_id: str | None = None
    task_id: str | None = None
    status: IndexingStatus = IndexingStatus.PENDING
    error_message: str | None = None
    duration: float | None = None
    filename: str | None = None
    width: int | None = None
    height: int | None = None
    video_url: str | None = None
    thumbnail_urls: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    def to_row(self) -> dict[str, Any]:
        """Column layout of the records table.

        Numeric metadata is stored as text and thumbnail URLs as a JSON
        string; ``None`` values are omitted so a merge never nulls a column.
        ``error_message`` is the exception: it is always written, so a record
        that leaves ``failed`` drops its stale diagnostic.
        """
        row: dict[str, Any] = {
            "project_id": self.project_id,
            "media_id": self.media_id,
            "user_id": self.user_id,
            "index_id": self.index_id,
            "video_id": self.video_id,
            "task_id": self.task_id,
            "status": self.status.value,
            "error_message": self.error_message,
            "duration": _num_to_text(self.duration),
            "filename": self.filename,
            "width": _num_to_text(self.width),
            "height": _num_to_text(self.height),
            "video_url": self.video_url,
            "thumbnail_urls": json.dumps(self.thumbnail_urls) if self.thumbnail_urls else None,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        return {k: v for k, v in row.items() if v is not None or k == "error_message"}

    @staticmethod
    def patch_row(fields: dict[str, Any]) -> dict[str, Any]:
        """Convert a partial set of record fields into table columns.

        Fields whose value is ``None`` are left out, so the patch never
        clears a column.
        """
        patch: dict[str, Any] = {}
        for name, value in fields.items():
            if value is None:
                continue
            if name in ("duration", "width", "height"):
                patch[name] = _num_to_text(value)
            elif name == "thumbnail_urls":
                patch[name] = json.dumps(list(value))
            elif isinstance(value, IndexingStatus):
                patch[name] = value.value
            else:
                patch[name] = value
        return patch

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> MediaIndexingRecord:
        raw_thumbs = row.get("thumbnail_urls")
        if isinstance(raw_thumbs, str):
            thumbs = json.loads(raw_thumbs) if raw_thumbs else []
        else:
            thumbs = list(raw_thumbs or [])
        return cls(
            project_id=str(row["project_id"]),
            media_id=str(row["media_id"]),
            user_id=row.get("user_id"),
            index_id=row.get("index_id") or "",
            video_id=row.get("video_id"),
            task_id=row.get("task_id"),
            status=IndexingStatus.from_provider(row.get("status")),
            error_message=row.get("error_message"),
            duration=_text_to_float(row.get("duration")),
            filename=row.get("filename"),
            width=_text_to_int(row.get("width")),
            height=_text_to_int(row.get("height")),
            video_url=row.get("video_url"),
            thumbnail_urls=thumbs,
            created_at=_stringify(row.get("created_at")),
            updated_at=_stringify(row.get("updated_at")),
        )


class UserIndexMapping(BaseModel):
    """Binds a local user to one provider-side index."""

    user_id: str
    index_id: str
    index_name: str
    created_at: str | None = None
    updated_at: str | None = None

    def to_row(self) -> dict[str, Any]:
        now = utc_now_iso()
        return {
            "user_id": self.user_id,
            "index_id": self.index_id,
            "index_name": self.index_name,
            "created_at": self.created_at or now,
            "updated_at": self.updated_at or now,
        }

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> UserIndexMapping:
        return cls(
            user_id=str(row["user_id"]),
            index_id=str(row["index_id"]),
            index_name=str(row["index_name"]),
            created_at=_stringify(row.get("created_at")),
            updated_at=_stringify(row.get("updated_at")),
        )


# -- Provider-side models --


class ProviderIndex(BaseModel):
    """An index (video collection) at the provider."""

    id: str
    name: str
    models: list[dict[str, Any]] = Field(default_factory=list)
    created_at: str | None = None


class UploadResult(BaseModel):
    """Handles returned once the provider accepts an upload."""

    task_id: str
    video_id: str
    status: IndexingStatus = IndexingStatus.UPLOADING


class SystemMetadata(BaseModel):
    duration: float | None = None
    filename: str | None = None
    width: int | None = None
    height: int | None = None


class HlsInfo(BaseModel):
    video_url: str | None = None
    thumbnail_urls: list[str] = Field(default_factory=list)
    status: str | None = None
    updated_at: str | None = None


class TaskStatus(BaseModel):
    """One observation of a provider task."""

    task_id: str
    video_id: str | None = None
    index_id: str | None = None
    status: IndexingStatus
    raw_status: str | None = None
    system_metadata: SystemMetadata | None = None
    hls: HlsInfo | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def metadata_fields(self) -> dict[str, Any]:
        """Derived metadata present in this observation, keyed by record field."""
        return _metadata_fields(self.system_metadata, self.hls)


class VideoInfo(BaseModel):
    """Metadata of an indexed video, fetched once its task is ready."""

    video_id: str
    index_id: str | None = None
    system_metadata: SystemMetadata | None = None
    hls: HlsInfo | None = None

    def metadata_fields(self) -> dict[str, Any]:
        return _metadata_fields(self.system_metadata, self.hls)


class SearchHit(BaseModel):
    video_id: str
    score: float = 0.0
    start: float = 0.0
    end: float = 0.0
    confidence: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Chapter(BaseModel):
    chapter_title: str = ""
    chapter_summary: str = ""
    start: float = 0.0
    end: float = 0.0


class Highlight(BaseModel):
    highlight: str = ""
    start: float = 0.0
    end: float = 0.0


class AnalysisResult(BaseModel):
    """Video understanding output (gist, summary, chapters, highlights)."""

    title: str | None = None
    topics: list[str] = Field(default_factory=list)
    hashtags: list[str] = Field(default_factory=list)
    summary: str | None = None
    chapters: list[Chapter] = Field(default_factory=list)
    highlights: list[Highlight] = Field(default_factory=list)
    text: str | None = None


class RestoredStatus(BaseModel):
    """Persisted status of one media item, as handed back on page load."""

    media_id: str
    video_id: str | None = None
    task_id: str | None = None
    status: IndexingStatus
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_record(cls, record: MediaIndexingRecord) -> RestoredStatus:
        metadata = {
            "duration": record.duration,
            "filename": record.filename,
            "width": record.width,
            "height": record.height,
            "video_url": record.video_url,
            "thumbnail_urls": record.thumbnail_urls or None,
        }
        return cls(
            media_id=record.media_id,
            video_id=record.video_id,
            task_id=record.task_id,
            status=record.status,
            error_message=record.error_message,
            metadata={k: v for k, v in metadata.items() if v is not None},
        )


class StatusUpdate(BaseModel):
    """One callback delivery, kept for handles and tests."""

    media_id: str
    status: IndexingStatus
    error_message: str | None = None
    video_id: str | None = None
    task_id: str | None = None


def _metadata_fields(system_metadata: SystemMetadata | None, hls: HlsInfo | None) -> dict[str, Any]:
    fields: dict[str, Any] = {}
    if system_metadata is not None:
        for name in ("duration", "filename", "width", "height"):
            value = getattr(system_metadata, name)
            if value is not None:
                fields[name] = value
    if hls is not None:
        if hls.video_url:
            fields["video_url"] = hls.video_url
        if hls.thumbnail_urls:
            fields["thumbnail_urls"] = list(hls.thumbnail_urls)
    return fields


def _num_to_text(value: float | int | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _text_to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _text_to_int(value: Any) -> int | None:
    number = _text_to_float(value)
    return int(number) if number is not None else None


def _stringify(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
