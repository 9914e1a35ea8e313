# src/ganttline/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The timeline core depends on Protocols instead of concrete clients.
This keeps the backend swappable (HTTP, offline demo, test fakes).

Records crossing these ports are plain dicts in the store's wire shape
(taskId, startDate, endDate, type, dependencies, ...); the core converts them
with timeline.task_models.
"""

from collections.abc import Mapping
from typing import Any, Protocol

TaskRecord = dict[str, Any]
ProjectRecord = dict[str, Any]


class TaskStore(Protocol):
    """Remote task persistence. Any raised exception counts as a failed call."""

    async def list_tasks(self, filters: Mapping[str, Any] | None = None) -> list[TaskRecord]: ...

    async def create_task(self, fields: Mapping[str, Any]) -> TaskRecord: ...

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord: ...

    async def delete_task(self, task_id: str) -> None: ...

    async def batch_update_tasks(self, patches: list[Mapping[str, Any]]) -> list[TaskRecord]: ...


class ProjectDirectory(Protocol):
    """Read-only project lookup, used to resolve projectId -> name."""

    async def list_projects(self) -> list[ProjectRecord]: ...
