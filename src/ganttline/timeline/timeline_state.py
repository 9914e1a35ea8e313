# src/ganttline/timeline/timeline_state.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from .dependency_graph import DependencyGraph, Link
from .task_models import Project, Task


class MutationPhase(StrEnum):
    """Per-task state of the latest mutation: idle -> pending -> committed | rolled_back."""

    IDLE = "idle"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True)
class TimelineState:
    """
    Current tasks, derived links and projects.

    `tasks` is an immutable tuple that is replaced wholesale on every change,
    so readers (analytics, export) can hold on to a snapshot safely. Only the
    mutation protocol writes here.
    """

    tasks: tuple[Task, ...] = ()
    graph: DependencyGraph = field(default_factory=DependencyGraph)
    projects: tuple[Project, ...] = ()

    phases: dict[str, MutationPhase] = field(default_factory=dict)
    saving_task_id: str | None = None
    last_error: str | None = None

    @property
    def links(self) -> list[Link]:
        return self.graph.links

    def task(self, task_id: str) -> Task | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def phase(self, task_id: str) -> MutationPhase:
        return self.phases.get(task_id, MutationPhase.IDLE)

    def project_name(self, project_id: str | None) -> str:
        for p in self.projects:
            if p.project_id == project_id:
                return p.name
        return "Unknown"

    # ---- writers (mutation protocol only) ----

    def replace_tasks(self, tasks: Iterable[Task]) -> None:
        self.tasks = tuple(tasks)
        self.graph = DependencyGraph.from_tasks(self.tasks)

    def put_task(self, task: Task) -> None:
        """Insert or replace one task by id, keeping its position."""
        if any(t.id == task.id for t in self.tasks):
            self.replace_tasks(task if t.id == task.id else t for t in self.tasks)
        else:
            self.replace_tasks((*self.tasks, task))

    def drop_task(self, task_id: str) -> None:
        self.replace_tasks(t for t in self.tasks if t.id != task_id)
        self.phases.pop(task_id, None)
