"""Twelve Labs video intelligence provider client.

Translates local requests (create/find index, upload, task status, video
metadata, search, analysis) into calls against the Twelve Labs HTTP API and
normalizes the responses into vindex models. Every failure surfaces as a
``ProviderAPIError`` carrying an HTTP status.
"""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import ValidationError

from vindex.core.exceptions import ConfigurationError, ProviderAPIError
from vindex.core.logging_config import get_logger
from vindex.core.models import (
    AnalysisResult,
    Chapter,
    Highlight,
    HlsInfo,
    IndexingStatus,
    MediaItem,
    ProviderIndex,
    SearchHit,
    SystemMetadata,
    TaskStatus,
    UploadResult,
    VideoInfo,
)
from vindex.core.retry_config import RetryConfig, create_retry_decorator

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.twelvelabs.io/v1.3"

# Provider error codes with a dedicated user-facing message and status.
KNOWN_ERROR_CODES: dict[str, tuple[str, int]] = {
    "video_resolution_too_low": (
        "Video resolution is too low. Minimum 360x360 required.",
        400,
    ),
    "video_duration_too_short": (
        "Video is too short. Minimum 10 seconds required.",
        400,
    ),
    "usage_limit_exceeded": ("Video indexing usage limit exceeded.", 429),
}

GENERIC_UPLOAD_FAILURE = "Failed to upload video for indexing"

_SEARCH_HIT_FIELDS = frozenset({"video_id", "score", "start", "end", "confidence"})


def user_facing_message(error: Exception) -> str:
    """Most specific diagnostic for an indexing failure.

    Recognized provider codes map to fixed messages; other provider errors
    keep their own message; anything else falls back to ``str(error)``.
    """
    if isinstance(error, ProviderAPIError):
        known = _match_known_code(error.code, error.message)
        if known is not None:
            return known[0]
        return error.message or GENERIC_UPLOAD_FAILURE
    return str(error) or GENERIC_UPLOAD_FAILURE


def _match_known_code(code: str | None, message: str | None) -> tuple[str, int] | None:
    if code and code in KNOWN_ERROR_CODES:
        return KNOWN_ERROR_CODES[code]
    for known_code, mapped in KNOWN_ERROR_CODES.items():
        if message and known_code in message:
            return mapped
    return None


class TwelveLabsClient:
    """Async client for the Twelve Labs API (v1.3).

    The underlying ``httpx.AsyncClient`` is created lazily. Pass ``transport``
    to route requests elsewhere (tests use ``httpx.MockTransport``).
    """

    _provider_name: str = "twelvelabs"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        index_models: list[dict[str, Any]] | None = None,
        search_options: list[str] | None = None,
        max_upload_bytes: int = 2 * 1024 * 1024 * 1024,
        timeout_seconds: float = 30.0,
        upload_timeout_seconds: float = 600.0,
        retry_config: RetryConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._index_models = index_models or [
            {"model_name": "marengo2.7", "model_options": ["visual", "audio"]},
        ]
        self._search_options = search_options or ["visual", "audio"]
        self._max_upload_bytes = max_upload_bytes
        self._timeout = httpx.Timeout(timeout_seconds)
        self._upload_timeout = httpx.Timeout(upload_timeout_seconds)
        self._retry_config = retry_config or RetryConfig()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(provider=self._provider_name)

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def ensure_configured(self) -> None:
        """Raise ConfigurationError when no API key is available."""
        if not self._api_key:
            raise ConfigurationError("VINDEX_TWELVELABS_API_KEY is not configured")

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={"x-api-key": self._api_key or "", "Accept": "application/json"},
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def _get_retry_decorator(self) -> Any:
        return create_retry_decorator(self._retry_config)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        timeout: httpx.Timeout | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self.ensure_configured()
        client = self._get_client()
        try:
            response = await client.request(
                method, path, timeout=timeout or self._timeout, **kwargs
            )
        except httpx.TransportError as e:
            raise ProviderAPIError(
                f"{self._provider_name} {method} {path} failed: {e}",
                status=503,
                retryable=True,
            ) from e

        if response.status_code >= 400:
            raise self._error_from_response(response)

        if not response.content:
            return {}
        try:
            payload = response.json()
        except ValueError as e:
            raise ProviderAPIError(
                f"{self._provider_name} returned a non-JSON body for {method} {path}",
                status=502,
            ) from e
        if not isinstance(payload, dict):
            raise ProviderAPIError(
                f"{self._provider_name} returned an unexpected payload for {method} {path}",
                status=502,
            )
        return payload

    def _error_from_response(self, response: httpx.Response) -> ProviderAPIError:
        code: str | None = None
        message = response.text or f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or message

        status = response.status_code
        known = _match_known_code(code, message)
        if known is not None:
            message, status = known

        return ProviderAPIError(
            message,
            status=status,
            code=code,
            retryable=response.status_code >= 500,
        )

    @staticmethod
    def _require(payload: dict[str, Any], key: str, operation: str) -> Any:
        value = payload.get(key)
        if value in (None, ""):
            raise ProviderAPIError(
                f"twelvelabs {operation} response is missing '{key}'",
                status=502,
            )
        return value

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> TwelveLabsClient:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Indexes
    # ------------------------------------------------------------------

    async def list_indexes(self, name: str | None = None) -> list[ProviderIndex]:
        """List indexes, optionally filtered by name on the provider side."""
        params: dict[str, Any] = {"page_limit": 50}
        if name:
            params["index_name"] = name

        @self._get_retry_decorator()
        async def _list_with_retry() -> dict[str, Any]:
            return await self._request("GET", "/indexes", params=params)

        payload = await _list_with_retry()
        entries = payload.get("data") or []
        if not isinstance(entries, list):
            raise ProviderAPIError("twelvelabs list indexes returned malformed data", status=502)
        return [
            ProviderIndex(
                id=str(self._require(entry, "_id", "list indexes")),
                name=str(entry.get("index_name", "")),
                models=entry.get("models") or [],
                created_at=entry.get("created_at"),
            )
            for entry in entries
        ]

    async def find_existing_index(self, name: str) -> ProviderIndex | None:
        """Return the index whose name matches exactly, if any."""
        for index in await self.list_indexes(name=name):
            if index.name == name:
                self._logger.debug("index_found", index_id=index.id, index_name=name)
                return index
        return None

    async def create_index(self, name: str) -> ProviderIndex:
        """Create a new index. Not retried: a retry could duplicate it."""
        payload = await self._request(
            "POST",
            "/indexes",
            json={"index_name": name, "models": self._index_models},
        )
        index_id = str(self._require(payload, "_id", "create index"))
        self._logger.info("index_created", index_id=index_id, index_name=name)
        return ProviderIndex(id=index_id, name=name, models=self._index_models)

    # ------------------------------------------------------------------
    # Upload and tasks
    # ------------------------------------------------------------------

    async def upload_video(self, index_id: str, item: MediaItem) -> UploadResult:
        """Submit a video to an index and return its task and video ids."""
        self.ensure_configured()
        if not item.content_type.startswith("video/"):
            raise ProviderAPIError("Only video files are supported", status=400)

        content = item.read_bytes()
        if len(content) > self._max_upload_bytes:
            raise ProviderAPIError(
                f"File size exceeds {self._max_upload_bytes // (1024 * 1024)}MB limit",
                status=400,
            )

        operation_logger = self._logger.bind(
            operation="upload_video",
            index_id=index_id,
            media_id=item.id,
            size_bytes=len(content),
        )
        operation_logger.debug("upload_started")

        payload = await self._request(
            "POST",
            "/tasks",
            data={"index_id": index_id, "enable_video_stream": "true"},
            files={"video_file": (item.filename, content, item.content_type)},
            timeout=self._upload_timeout,
        )
        result = UploadResult(
            task_id=str(self._require(payload, "_id", "upload")),
            video_id=str(self._require(payload, "video_id", "upload")),
        )
        operation_logger.info("upload_accepted", task_id=result.task_id, video_id=result.video_id)
        return result

    async def get_task_status(self, task_id: str) -> TaskStatus:
        """Fetch one observation of a task. Never retried."""
        payload = await self._request("GET", f"/tasks/{task_id}")
        raw_status = payload.get("status")
        if not isinstance(raw_status, str):
            raise ProviderAPIError("twelvelabs task response is missing 'status'", status=502)

        status = IndexingStatus.from_provider(raw_status)
        if status is IndexingStatus.UNKNOWN:
            self._logger.warning("unrecognized_task_status", task_id=task_id, raw_status=raw_status)

        try:
            return TaskStatus(
                task_id=str(payload.get("_id") or task_id),
                video_id=payload.get("video_id"),
                index_id=payload.get("index_id"),
                status=status,
                raw_status=raw_status,
                system_metadata=_parse_system_metadata(payload.get("system_metadata")),
                hls=_parse_hls(payload.get("hls")),
                created_at=payload.get("created_at"),
                updated_at=payload.get("updated_at"),
            )
        except ValidationError as e:
            raise ProviderAPIError(f"twelvelabs task response is malformed: {e}", status=502) from e

    async def get_video(self, index_id: str, video_id: str) -> VideoInfo:
        """Fetch metadata and streaming URLs of an indexed video."""

        @self._get_retry_decorator()
        async def _get_with_retry() -> dict[str, Any]:
            return await self._request("GET", f"/indexes/{index_id}/videos/{video_id}")

        payload = await _get_with_retry()
        try:
            return VideoInfo(
                video_id=str(payload.get("_id") or video_id),
                index_id=index_id,
                system_metadata=_parse_system_metadata(payload.get("system_metadata")),
                hls=_parse_hls(payload.get("hls")),
            )
        except ValidationError as e:
            raise ProviderAPIError(
                f"twelvelabs video response is malformed: {e}", status=502
            ) from e

    # ------------------------------------------------------------------
    # Search and analysis
    # ------------------------------------------------------------------

    async def search(self, index_id: str, query: str) -> list[SearchHit]:
        """Search an index by text query."""

        @self._get_retry_decorator()
        async def _search_with_retry() -> dict[str, Any]:
            # Multipart body; (None, value) sends a plain form field.
            return await self._request(
                "POST",
                "/search",
                data={"index_id": index_id, "search_options": self._search_options},
                files={"query_text": (None, query)},
            )

        payload = await _search_with_retry()
        hits: list[SearchHit] = []
        for entry in payload.get("data") or []:
            if not isinstance(entry, dict) or "video_id" not in entry:
                raise ProviderAPIError("twelvelabs search returned malformed data", status=502)
            hits.append(
                SearchHit(
                    video_id=str(entry["video_id"]),
                    score=float(entry.get("score") or 0.0),
                    start=float(entry.get("start") or 0.0),
                    end=float(entry.get("end") or 0.0),
                    confidence=entry.get("confidence"),
                    metadata={k: v for k, v in entry.items() if k not in _SEARCH_HIT_FIELDS},
                )
            )
        self._logger.debug("search_completed", index_id=index_id, hits=len(hits))
        return hits

    async def analyze(self, video_id: str, prompt: str | None = None) -> AnalysisResult:
        """Open-ended analysis with ``prompt``, else gist + summary + chapters + highlights."""
        if prompt:
            payload = await self._request(
                "POST",
                "/analyze",
                json={"video_id": video_id, "prompt": prompt, "stream": False},
            )
            text = payload.get("data")
            return AnalysisResult(summary=text, text=text)

        gist = await self._request(
            "POST",
            "/gist",
            json={"video_id": video_id, "types": ["title", "topic", "hashtag"]},
        )
        summary = await self._summarize(video_id, "summary")
        chapters = await self._summarize(video_id, "chapter")
        highlights = await self._summarize(video_id, "highlight")

        return AnalysisResult(
            title=gist.get("title"),
            topics=list(gist.get("topics") or []),
            hashtags=list(gist.get("hashtags") or []),
            summary=summary.get("summary"),
            chapters=[
                Chapter(
                    chapter_title=c.get("chapter_title", ""),
                    chapter_summary=c.get("chapter_summary", ""),
                    start=float(c.get("start_sec", c.get("start", 0.0)) or 0.0),
                    end=float(c.get("end_sec", c.get("end", 0.0)) or 0.0),
                )
                for c in chapters.get("chapters") or []
            ],
            highlights=[
                Highlight(
                    highlight=h.get("highlight", ""),
                    start=float(h.get("start_sec", h.get("start", 0.0)) or 0.0),
                    end=float(h.get("end_sec", h.get("end", 0.0)) or 0.0),
                )
                for h in highlights.get("highlights") or []
            ],
        )

    async def _summarize(self, video_id: str, kind: str) -> dict[str, Any]:
        return await self._request("POST", "/summarize", json={"video_id": video_id, "type": kind})


def _parse_system_metadata(raw: Any) -> SystemMetadata | None:
    if not isinstance(raw, dict):
        return None
    return SystemMetadata(
        duration=raw.get("duration"),
        filename=raw.get("filename"),
        width=raw.get("width"),
        height=raw.get("height"),
    )


def _parse_hls(raw: Any) -> HlsInfo | None:
    if not isinstance(raw, dict):
        return None
    return HlsInfo(
        video_url=raw.get("video_url"),
        thumbnail_urls=list(raw.get("thumbnail_urls") or []),
        status=raw.get("status"),
        updated_at=raw.get("updated_at"),
    )
