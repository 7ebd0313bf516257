"""Configuration management for vindex using pydantic-settings."""

from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from vindex.core.exceptions import ConfigurationError
from vindex.core.retry_config import RetryConfig

DEFAULT_INDEX_MODELS: list[dict[str, Any]] = [
    {"model_name": "marengo2.7", "model_options": ["visual", "audio"]},
    {"model_name": "pegasus1.2", "model_options": ["visual", "audio"]},
]


class VindexConfig(BaseSettings):
    """vindex configuration with environment variable support.

    All settings use the VINDEX_ env prefix and may also come from a
    ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_prefix="VINDEX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Video Intelligence Provider --
    twelvelabs_api_key: str = ""
    twelvelabs_base_url: str = "https://api.twelvelabs.io/v1.3"
    index_name_prefix: str = "opencut_user_"
    index_models: list[dict[str, Any]] = Field(
        default_factory=lambda: [dict(m) for m in DEFAULT_INDEX_MODELS]
    )
    search_options: list[str] = ["visual", "audio"]
    max_upload_bytes: int = 2 * 1024 * 1024 * 1024

    # -- Status Store --
    store_provider: Literal["postgrest", "sqlite"] = "sqlite"
    supabase_url: str = ""
    supabase_service_key: str = ""
    database_path: str = "vindex.db"
    records_table: str = "media_twelvelabs"
    user_indexes_table: str = "user_indexes"

    # -- Polling --
    poll_initial_delay_seconds: float = 2.0
    poll_interval_seconds: float = 10.0
    max_poll_attempts: int = 360

    # -- Timeouts --
    request_timeout_seconds: float = 30.0
    upload_timeout_seconds: float = 600.0

    # -- Logging --
    log_level: str = "INFO"
    log_format: Literal["colored", "plain", "json"] = "colored"
    log_timestamps: bool = True

    # -- Retry Configuration --
    retry_max_attempts: int = 3
    retry_min_wait_seconds: float = 1.0
    retry_max_wait_seconds: float = 30.0
    retry_exponential_multiplier: float = 1.0

    @field_validator("poll_initial_delay_seconds", "poll_interval_seconds")
    @classmethod
    def _validate_non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("poll delays must be >= 0")
        return value

    @field_validator("max_poll_attempts")
    @classmethod
    def _validate_max_poll_attempts(cls, value: int) -> int:
        if value < 0:
            raise ValueError("max_poll_attempts must be >= 0 (0 disables the limit)")
        return value

    @field_validator("twelvelabs_base_url", "supabase_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    def expected_index_name(self, user_id: str) -> str:
        """Deterministic provider index name for a user."""
        return f"{self.index_name_prefix}{user_id}"

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            min_wait_seconds=self.retry_min_wait_seconds,
            max_wait_seconds=self.retry_max_wait_seconds,
            exponential_multiplier=self.retry_exponential_multiplier,
        )

    def require_provider_credentials(self) -> None:
        """Raise ConfigurationError when the provider API key is missing."""
        if not self.twelvelabs_api_key:
            raise ConfigurationError(
                "VINDEX_TWELVELABS_API_KEY is required but not set. "
                "Run 'vindex setup' or export the variable."
            )

    def require_store_settings(self) -> None:
        """Raise ConfigurationError when the selected store is not configured."""
        if self.store_provider == "postgrest" and not (
            self.supabase_url and self.supabase_service_key
        ):
            raise ConfigurationError(
                "VINDEX_SUPABASE_URL and VINDEX_SUPABASE_SERVICE_KEY are required "
                "when VINDEX_STORE_PROVIDER=postgrest."
            )
