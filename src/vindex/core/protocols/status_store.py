from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

Row = dict[str, Any]


@dataclass(frozen=True)
class StoreResult:
    """Outcome of a write against a status store.

    Writes report failure through ``error`` instead of raising, so callers
    on the best-effort path can log and move on.
    """

    data: list[Row] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def first(self) -> Row | None:
        return self.data[0] if self.data else None

    @classmethod
    def success(cls, data: list[Row] | None = None) -> StoreResult:
        return cls(data=data or [])

    @classmethod
    def failure(cls, error: str) -> StoreResult:
        return cls(error=error)


@runtime_checkable
class StatusStore(Protocol):
    async def select_one(self, table: str, filters: dict[str, str]) -> Row | None: ...

    async def select_in(
        self, table: str, filters: dict[str, str], column: str, values: list[str]
    ) -> list[Row]: ...

    async def insert(self, table: str, rows: Row | list[Row]) -> StoreResult: ...

    async def upsert(
        self, table: str, rows: Row | list[Row], on_conflict: str | None = None
    ) -> StoreResult: ...

    async def update(self, table: str, patch: Row, filters: dict[str, str]) -> StoreResult: ...

    async def close(self) -> None: ...
