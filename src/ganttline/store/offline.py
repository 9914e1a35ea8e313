# src/ganttline/store/offline.py

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta, timezone
from typing import Any

from ..core.errors import StoreError
from ..core.ports import ProjectRecord, TaskRecord

logger = logging.getLogger(__name__)


class OfflineTaskStore:
    """
    In-memory task store used for demos when no backend is configured.

    Behavior:
    - ids are assigned sequentially ("task-1", "task-2", ...)
    - update merges the patch into the stored record and returns a copy
    - unknown ids raise StoreError, like a 404 from the real API
    """

    def __init__(
        self,
        tasks: Iterable[Mapping[str, Any]] = (),
        projects: Iterable[Mapping[str, Any]] = (),
    ) -> None:
        self._tasks: dict[str, TaskRecord] = {}
        self._projects: list[ProjectRecord] = [dict(p) for p in projects]
        self._next_id = 1
        for raw in tasks:
            record = dict(raw)
            task_id = str(record.get("taskId") or self._new_id())
            record["taskId"] = task_id
            self._tasks[task_id] = record

    @classmethod
    def demo(cls, now: datetime | None = None) -> OfflineTaskStore:
        """A small sample plan around `now` so the console has something to show."""
        base = (now or datetime.now(timezone.utc)).replace(hour=0, minute=0, second=0, microsecond=0)

        def day(offset: int) -> str:
            return (base + timedelta(days=offset)).strftime("%Y-%m-%dT%H:%M:%S.000Z")

        projects = [{"projectId": "demo", "name": "Demo project", "status": "IN_PROGRESS"}]
        tasks = [
            {"taskId": "task-1", "text": "Design", "startDate": day(-10), "endDate": day(-2),
             "progress": 100, "projectId": "demo", "order": 0},
            {"taskId": "task-2", "text": "Build", "startDate": day(-2), "endDate": day(2),
             "progress": 40, "projectId": "demo", "order": 1,
             "dependencies": [{"taskId": "task-1", "type": "e2s"}]},
            {"taskId": "task-3", "text": "Test", "startDate": day(2), "endDate": day(9),
             "progress": 0, "projectId": "demo", "order": 2,
             "dependencies": [{"taskId": "task-2", "type": "e2s"}]},
            {"taskId": "task-4", "text": "Launch", "type": "milestone", "startDate": day(10),
             "endDate": day(10), "duration": 0, "progress": 0, "projectId": "demo", "order": 3,
             "dependencies": [{"taskId": "task-3", "type": "e2s"}]},
        ]
        return cls(tasks=tasks, projects=projects)

    def _new_id(self) -> str:
        while f"task-{self._next_id}" in self._tasks:
            self._next_id += 1
        task_id = f"task-{self._next_id}"
        self._next_id += 1
        return task_id

    def _get(self, task_id: str) -> TaskRecord:
        record = self._tasks.get(task_id)
        if record is None:
            raise StoreError(f"Task not found: {task_id}", status_code=404)
        return record

    async def aclose(self) -> None:
        return

    async def list_tasks(self, filters: Mapping[str, Any] | None = None) -> list[TaskRecord]:
        project_id = (filters or {}).get("projectId")
        return [
            copy.deepcopy(r)
            for r in self._tasks.values()
            if not project_id or r.get("projectId") == project_id
        ]

    async def create_task(self, fields: Mapping[str, Any]) -> TaskRecord:
        record = copy.deepcopy(dict(fields))
        record["taskId"] = self._new_id()
        self._tasks[record["taskId"]] = record
        logger.debug("Offline task created id=%s", record["taskId"])
        return copy.deepcopy(record)

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord:
        record = self._get(task_id)
        record.update(copy.deepcopy(dict(patch)))
        record["taskId"] = task_id
        return copy.deepcopy(record)

    async def delete_task(self, task_id: str) -> None:
        self._get(task_id)
        del self._tasks[task_id]

    async def batch_update_tasks(self, patches: list[Mapping[str, Any]]) -> list[TaskRecord]:
        for patch in patches:
            self._get(str(patch.get("taskId")))
        return [
            await self.update_task(str(p["taskId"]), {k: v for k, v in p.items() if k != "taskId"})
            for p in patches
        ]

    async def list_projects(self) -> list[ProjectRecord]:
        return copy.deepcopy(self._projects)
