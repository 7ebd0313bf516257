from __future__ import annotations

from vindex.core.config import VindexConfig
from vindex.core.protocols import StatusStore, VideoProvider


def create_video_provider(config: VindexConfig) -> VideoProvider:
    """Create the video intelligence provider client based on config."""
    from vindex.providers.twelvelabs import TwelveLabsClient

    return TwelveLabsClient(
        api_key=config.twelvelabs_api_key or None,
        base_url=config.twelvelabs_base_url,
        index_models=config.index_models,
        search_options=config.search_options,
        max_upload_bytes=config.max_upload_bytes,
        timeout_seconds=config.request_timeout_seconds,
        upload_timeout_seconds=config.upload_timeout_seconds,
        retry_config=config.retry_config(),
    )


def create_status_store(config: VindexConfig) -> StatusStore:
    """Create the status store selected by ``store_provider``.

    Raises:
        ConfigurationError: If the PostgREST store lacks its URL or key.
    """
    provider_name = config.store_provider.lower()

    if provider_name == "postgrest":
        from vindex.store.postgrest import PostgrestStatusStore

        config.require_store_settings()
        return PostgrestStatusStore(
            url=config.supabase_url,
            service_key=config.supabase_service_key,
            timeout_seconds=config.request_timeout_seconds,
        )

    from vindex.store.sqlite import SqliteStatusStore

    return SqliteStatusStore(config.database_path)
