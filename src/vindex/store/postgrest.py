"""PostgREST (Supabase REST) status store.

Server-side only: authenticates with the service role key. Reads raise
``StoreError`` on transport or HTTP failure; writes return a ``StoreResult``
carrying the error instead of raising.
"""

from __future__ import annotations

import json
from typing import Any

import httpx

from vindex.core.exceptions import StoreError
from vindex.core.logging_config import get_logger
from vindex.core.protocols import Row, StoreResult

logger = get_logger(__name__)


def _eq_params(filters: dict[str, str]) -> dict[str, str]:
    return {key: f"eq.{value}" for key, value in filters.items()}


def _in_list(values: list[str]) -> str:
    # Quoted so commas and parentheses inside a value stay part of it.
    quoted = (
        '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"' for value in values
    )
    return f"in.({','.join(quoted)})"


class PostgrestStatusStore:
    """Status store speaking the PostgREST dialect over httpx."""

    _provider_name: str = "postgrest"

    def __init__(
        self,
        *,
        url: str,
        service_key: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._rest_url = f"{url.rstrip('/')}/rest/v1"
        self._service_key = service_key
        self._timeout = httpx.Timeout(timeout_seconds)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._logger = logger.bind(store=self._provider_name)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._rest_url,
                headers={
                    "apikey": self._service_key,
                    "Authorization": f"Bearer {self._service_key}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    async def _read(self, table: str, params: dict[str, str]) -> list[Row]:
        try:
            response = await self._get_client().get(
                f"/{table}", params=params, headers={"Cache-Control": "no-store"}
            )
        except httpx.HTTPError as e:
            raise StoreError(f"select on {table} failed: {e}", table=table) from e
        if response.status_code >= 400:
            raise StoreError(
                f"select on {table} failed: {response.status_code} {response.text}",
                table=table,
            )
        try:
            rows = response.json()
        except ValueError as e:
            raise StoreError(f"select on {table} returned a non-JSON body", table=table) from e
        if not isinstance(rows, list):
            raise StoreError(f"select on {table} returned {type(rows).__name__}", table=table)
        return rows

    async def _write(
        self,
        method: str,
        table: str,
        body: Any,
        *,
        params: dict[str, str] | None = None,
        prefer: str = "return=representation",
    ) -> StoreResult:
        operation_logger = self._logger.bind(operation=method.lower(), table=table)
        try:
            response = await self._get_client().request(
                method,
                f"/{table}",
                params=params,
                content=json.dumps(body),
                headers={"Content-Type": "application/json", "Prefer": prefer},
            )
        except httpx.HTTPError as e:
            operation_logger.warning("store_write_failed", error=str(e))
            return StoreResult.failure(f"{method} {table} failed: {e}")

        if response.status_code >= 400:
            operation_logger.warning(
                "store_write_rejected", status=response.status_code, body=response.text
            )
            return StoreResult.failure(response.text or f"HTTP {response.status_code}")

        if not response.content:
            return StoreResult.success([])
        try:
            data = response.json()
        except ValueError:
            return StoreResult.failure(f"{method} {table} returned a non-JSON body")
        return StoreResult.success(data if isinstance(data, list) else [data])

    async def select_one(self, table: str, filters: dict[str, str]) -> Row | None:
        params = {**_eq_params(filters), "limit": "1", "select": "*"}
        rows = await self._read(table, params)
        return rows[0] if rows else None

    async def select_in(
        self, table: str, filters: dict[str, str], column: str, values: list[str]
    ) -> list[Row]:
        if not values:
            return []
        params = {
            **_eq_params(filters),
            column: _in_list(values),
            "select": "*",
        }
        return await self._read(table, params)

    async def insert(self, table: str, rows: Row | list[Row]) -> StoreResult:
        return await self._write("POST", table, rows)

    async def upsert(
        self, table: str, rows: Row | list[Row], on_conflict: str | None = None
    ) -> StoreResult:
        if not on_conflict:
            return await self._write("POST", table, rows)
        # PostgREST needs both the merge preference and the on_conflict target.
        return await self._write(
            "POST",
            table,
            rows,
            params={"on_conflict": on_conflict},
            prefer="return=representation,resolution=merge-duplicates",
        )

    async def update(self, table: str, patch: Row, filters: dict[str, str]) -> StoreResult:
        return await self._write("PATCH", table, patch, params=_eq_params(filters))

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
