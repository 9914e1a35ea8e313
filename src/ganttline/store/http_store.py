# src/ganttline/store/http_store.py

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from ..core.errors import StoreError
from ..core.ports import ProjectRecord, TaskRecord

logger = logging.getLogger(__name__)

API_PREFIX = "/api/crm"


def _make_timeout(seconds: float) -> httpx.Timeout:
    connect_s = min(5.0, seconds)
    return httpx.Timeout(connect=connect_s, read=seconds, write=10.0, pool=connect_s)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP error {response.status_code}"


class HttpTaskStore:
    """
    Task store + project directory backed by the CRM REST API.

    Endpoints (relative to <base_url>/api/crm):
    - GET    /tasks[?projectId=]  -> {"tasks": [...]}
    - POST   /tasks               -> task
    - PUT    /tasks/{id}          -> task
    - DELETE /tasks/{id}
    - PUT    /tasks/batch         -> {"tasks": [...]}
    - GET    /projects            -> {"projects": [...]}

    Any transport error or non-2xx response is raised as StoreError.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url or not base_url.strip():
            raise ValueError("base_url is required")

        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            headers=headers,
            timeout=_make_timeout(float(timeout_seconds)),
            transport=transport,
        )
        logger.info("HttpTaskStore ready base_url=%s", base_url)

    @classmethod
    def from_settings(cls, settings) -> HttpTaskStore:
        return cls(
            settings.store_base_url,
            api_token=settings.store_api_token,
            timeout_seconds=settings.store_timeout_seconds,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> HttpTaskStore:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ---- low-level ----

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise StoreError(f"Task store unreachable: {exc}") from exc

        if not response.is_success:
            message = _error_message(response)
            logger.warning("%s %s -> %s %s", method, url, response.status_code, message)
            raise StoreError(message, status_code=response.status_code)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise StoreError(f"Invalid JSON from task store ({method} {url})") from exc

    # ---- TaskStore ----

    async def list_tasks(self, filters: Mapping[str, Any] | None = None) -> list[TaskRecord]:
        params = {k: v for k, v in (filters or {}).items() if v not in (None, "")}
        body = await self._request("GET", "/tasks", params=params)
        return list(body.get("tasks") or [])

    async def create_task(self, fields: Mapping[str, Any]) -> TaskRecord:
        return await self._request("POST", "/tasks", json=dict(fields))

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord:
        return await self._request("PUT", f"/tasks/{task_id}", json=dict(patch))

    async def delete_task(self, task_id: str) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def batch_update_tasks(self, patches: list[Mapping[str, Any]]) -> list[TaskRecord]:
        body = await self._request("PUT", "/tasks/batch", json={"updates": [dict(p) for p in patches]})
        return list(body.get("tasks") or [])

    # ---- ProjectDirectory ----

    async def list_projects(self) -> list[ProjectRecord]:
        body = await self._request("GET", "/projects")
        return list(body.get("projects") or [])
