"""Configuration checks for vindex.

Reports which settings an indexing run needs and whether they are present,
without contacting the provider or the store.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from vindex.core.config import VindexConfig


@dataclass
class ConfigCheck:
    """Result of checking a single setting.

    Attributes:
        name: Name of the checked setting or group of settings
        ok: Whether the setting is usable
        detail: Human-readable explanation of the result
        required: Whether indexing cannot run without it
    """

    name: str
    ok: bool
    detail: str
    required: bool = True


@dataclass
class DoctorResult:
    """Result of running configuration checks.

    Attributes:
        checks: List of individual check results
    """

    checks: list[ConfigCheck] = field(default_factory=list)

    @property
    def all_ok(self) -> bool:
        """Return True if all required checks passed."""
        return all(check.ok or not check.required for check in self.checks)


def check_configuration(config: VindexConfig) -> DoctorResult:
    """Check the provider credential, the status store and the polling budget.

    Args:
        config: vindex configuration to inspect.

    Returns:
        DoctorResult containing all check results
    """
    checks: list[ConfigCheck] = []

    if config.twelvelabs_api_key:
        checks.append(ConfigCheck("twelvelabs_api_key", True, "set"))
    else:
        checks.append(
            ConfigCheck("twelvelabs_api_key", False, "VINDEX_TWELVELABS_API_KEY is not set")
        )

    if config.store_provider == "postgrest":
        missing = [
            name
            for name, value in (
                ("VINDEX_SUPABASE_URL", config.supabase_url),
                ("VINDEX_SUPABASE_SERVICE_KEY", config.supabase_service_key),
            )
            if not value
        ]
        if missing:
            checks.append(ConfigCheck("store", False, f"postgrest: {', '.join(missing)} not set"))
        else:
            checks.append(ConfigCheck("store", True, f"postgrest: {config.supabase_url}"))
    else:
        checks.append(_check_sqlite_path(config.database_path))

    if config.max_poll_attempts == 0:
        checks.append(
            ConfigCheck("max_poll_attempts", False, "0: polling never times out", required=False)
        )
    else:
        budget = config.poll_initial_delay_seconds + config.poll_interval_seconds * (
            config.max_poll_attempts - 1
        )
        checks.append(
            ConfigCheck(
                "max_poll_attempts",
                True,
                f"{config.max_poll_attempts} checks (~{budget / 60:.0f} min)",
                required=False,
            )
        )

    return DoctorResult(checks=checks)


def _check_sqlite_path(database_path: str) -> ConfigCheck:
    if database_path == ":memory:":
        return ConfigCheck("store", True, "sqlite: in-memory (records are not kept)")
    parent = Path(database_path).expanduser().resolve().parent
    # The store creates missing directories, so only an existing non-directory is fatal.
    if parent.exists() and not parent.is_dir():
        return ConfigCheck("store", False, f"sqlite: {parent} is not a directory")
    return ConfigCheck("store", True, f"sqlite: {database_path}")
