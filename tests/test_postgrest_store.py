"""Tests for the PostgREST status store."""

from __future__ import annotations

import json

import httpx
import pytest

from vindex.core.exceptions import StoreError
from vindex.store.postgrest import PostgrestStatusStore


class RequestLog:
    def __init__(self, response: httpx.Response) -> None:
        self.requests: list[httpx.Request] = []
        self._response = response

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._response


def make_store(handler) -> PostgrestStatusStore:
    return PostgrestStatusStore(
        url="https://abc.supabase.co/",
        service_key="service-key",
        transport=httpx.MockTransport(handler),
    )


class TestPostgrestReads:
    """Test request shape and error handling of reads."""

    async def test_select_one(self):
        log = RequestLog(httpx.Response(200, json=[{"media_id": "m1"}]))
        store = make_store(log)

        row = await store.select_one("media_twelvelabs", {"project_id": "p1", "media_id": "m1"})
        await store.close()

        assert row == {"media_id": "m1"}
        request = log.requests[0]
        assert request.url.path == "/rest/v1/media_twelvelabs"
        assert request.url.params["project_id"] == "eq.p1"
        assert request.url.params["media_id"] == "eq.m1"
        assert request.url.params["limit"] == "1"
        assert request.headers["apikey"] == "service-key"
        assert request.headers["authorization"] == "Bearer service-key"
        assert request.headers["cache-control"] == "no-store"

    async def test_select_one_empty(self):
        store = make_store(RequestLog(httpx.Response(200, json=[])))
        assert await store.select_one("user_indexes", {"user_id": "u1"}) is None

    async def test_select_in(self):
        log = RequestLog(httpx.Response(200, json=[{"media_id": "m1"}, {"media_id": "m2"}]))
        store = make_store(log)

        rows = await store.select_in("media_twelvelabs", {"project_id": "p1"}, "media_id", ["m1", "m2"])

        assert len(rows) == 2
        assert log.requests[0].url.params["media_id"] == 'in.("m1","m2")'

    async def test_select_in_quotes_reserved_characters(self):
        log = RequestLog(httpx.Response(200, json=[]))
        store = make_store(log)

        await store.select_in("t", {}, "media_id", ["a,b", "c(d)", 'say "hi"'])

        assert log.requests[0].url.params["media_id"] == (
            'in.("a,b","c(d)","say \\"hi\\"")'
        )

    async def test_select_in_without_values_skips_request(self):
        log = RequestLog(httpx.Response(200, json=[]))
        store = make_store(log)
        assert await store.select_in("t", {}, "media_id", []) == []
        assert log.requests == []

    async def test_read_http_error_raises(self):
        store = make_store(RequestLog(httpx.Response(500, text="boom")))
        with pytest.raises(StoreError) as exc_info:
            await store.select_one("user_indexes", {"user_id": "u1"})
        assert exc_info.value.table == "user_indexes"

    async def test_read_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        with pytest.raises(StoreError):
            await make_store(handler).select_one("user_indexes", {"user_id": "u1"})


class TestPostgrestWrites:
    """Test request shape and error handling of writes."""

    async def test_upsert_with_conflict_target(self):
        log = RequestLog(httpx.Response(201, json=[{"project_id": "p1", "media_id": "m1"}]))
        store = make_store(log)

        result = await store.upsert(
            "media_twelvelabs",
            {"project_id": "p1", "media_id": "m1"},
            on_conflict="project_id,media_id",
        )

        assert result.ok
        assert result.first == {"project_id": "p1", "media_id": "m1"}
        request = log.requests[0]
        assert request.method == "POST"
        assert request.url.params["on_conflict"] == "project_id,media_id"
        assert "resolution=merge-duplicates" in request.headers["prefer"]
        assert json.loads(request.content) == {"project_id": "p1", "media_id": "m1"}

    async def test_insert(self):
        log = RequestLog(httpx.Response(201, json=[{"user_id": "u1"}]))
        result = await make_store(log).insert("user_indexes", {"user_id": "u1"})

        assert result.ok
        assert "on_conflict" not in log.requests[0].url.params
        assert log.requests[0].headers["prefer"] == "return=representation"

    async def test_update(self):
        log = RequestLog(httpx.Response(200, json=[{"status": "ready"}]))
        result = await make_store(log).update(
            "media_twelvelabs", {"status": "ready"}, {"task_id": "t1"}
        )

        assert result.ok
        request = log.requests[0]
        assert request.method == "PATCH"
        assert request.url.params["task_id"] == "eq.t1"

    async def test_empty_write_response(self):
        result = await make_store(RequestLog(httpx.Response(204))).update("t", {"a": 1}, {"b": "2"})
        assert result.ok
        assert result.data == []

    async def test_rejected_write_returns_failure(self):
        """Test writes report errors instead of raising."""
        store = make_store(RequestLog(httpx.Response(409, text="duplicate key")))

        result = await store.insert("user_indexes", {"user_id": "u1"})

        assert not result.ok
        assert result.error == "duplicate key"
        assert result.first is None

    async def test_write_transport_error_returns_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        result = await make_store(handler).upsert("t", {"a": 1}, on_conflict="a")
        assert not result.ok
