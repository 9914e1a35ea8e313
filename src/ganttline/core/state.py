# src/ganttline/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..timeline.export import KindFilter, StatusFilter, filter_tasks
from ..timeline.mutations import MutationProtocol
from ..timeline.task_models import Task
from ..timeline.timeline_state import TimelineState
from .ports import TaskStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    store: TaskStore
    timeline: TimelineState
    mutations: MutationProtocol

    project_id: str | None = None
    kind_filter: KindFilter = KindFilter.ALL
    status_filter: StatusFilter = StatusFilter.ALL

    def visible_tasks(self) -> list[Task]:
        """Current tasks narrowed by the active filter selection."""
        return filter_tasks(self.timeline.tasks, self.kind_filter, self.status_filter)
