# tests/test_http_store.py

from __future__ import annotations

import json

import httpx
import pytest

from ganttline.core.errors import StoreError
from ganttline.store.http_store import HttpTaskStore


def _store(handler) -> HttpTaskStore:
    return HttpTaskStore(
        "https://crm.example.test/",
        api_token="secret",
        timeout_seconds=2.0,
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_list_tasks_sends_filters_and_auth() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"tasks": [{"taskId": "A"}]})

    async with _store(handler) as store:
        tasks = await store.list_tasks({"projectId": "p1", "empty": ""})

    assert tasks == [{"taskId": "A"}]
    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == "/api/crm/tasks"
    assert dict(request.url.params) == {"projectId": "p1"}
    assert request.headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_write_routes() -> None:
    seen: list[tuple[str, str, object]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        seen.append((request.method, request.url.path, body))
        if request.method == "DELETE":
            return httpx.Response(204)
        if request.url.path.endswith("/batch"):
            return httpx.Response(200, json={"tasks": body["updates"]})
        return httpx.Response(200, json={"taskId": "A", **(body or {})})

    async with _store(handler) as store:
        created = await store.create_task({"text": "Design"})
        updated = await store.update_task("A", {"progress": 40})
        deleted = await store.delete_task("A")
        batch = await store.batch_update_tasks([{"taskId": "A", "order": 0}])

    assert created == {"taskId": "A", "text": "Design"}
    assert updated["progress"] == 40
    assert deleted is None
    assert batch == [{"taskId": "A", "order": 0}]
    assert [(m, p) for m, p, _ in seen] == [
        ("POST", "/api/crm/tasks"),
        ("PUT", "/api/crm/tasks/A"),
        ("DELETE", "/api/crm/tasks/A"),
        ("PUT", "/api/crm/tasks/batch"),
    ]


@pytest.mark.asyncio
async def test_list_projects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/crm/projects"
        return httpx.Response(200, json={"projects": [{"projectId": "p1", "name": "Website"}]})

    async with _store(handler) as store:
        assert await store.list_projects() == [{"projectId": "p1", "name": "Website"}]


@pytest.mark.asyncio
async def test_error_response_uses_server_message() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(409, json={"error": "Task is locked"})

    async with _store(handler) as store:
        with pytest.raises(StoreError) as exc_info:
            await store.update_task("A", {"progress": 10})

    assert str(exc_info.value) == "Task is locked"
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_error_response_without_json_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="bad gateway")

    async with _store(handler) as store:
        with pytest.raises(StoreError, match="HTTP error 502"):
            await store.list_tasks()


@pytest.mark.asyncio
async def test_transport_errors_become_store_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with _store(handler) as store:
        with pytest.raises(StoreError, match="unreachable"):
            await store.delete_task("A")


def test_base_url_is_required() -> None:
    with pytest.raises(ValueError):
        HttpTaskStore("  ")
