# src/ganttline/timeline/analytics.py

from __future__ import annotations

"""
Derived timeline analytics.

Everything here is a pure function of the tasks passed in (and `now`), so
callers recompute on every read instead of caching.
"""

import math
from collections.abc import Iterable
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from .task_models import DAY_SECONDS, Task, TaskKind

RISK_WINDOW_DAYS = 3
RISK_PROGRESS_THRESHOLD = 75


class TaskStatus(StrEnum):
    COMPLETED = "Completed"
    IN_PROGRESS = "In Progress"
    NOT_STARTED = "Not Started"


def _now(now: datetime | None) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def classify_status(progress: int) -> TaskStatus:
    if progress >= 100:
        return TaskStatus.COMPLETED
    if progress > 0:
        return TaskStatus.IN_PROGRESS
    return TaskStatus.NOT_STARTED


def days_until_due(task: Task, now: datetime | None = None) -> int:
    return math.ceil((task.end - _now(now)).total_seconds() / DAY_SECONDS)


def is_at_risk(task: Task, now: datetime | None = None) -> bool:
    """
    Overdue, or due within RISK_WINDOW_DAYS with progress under
    RISK_PROGRESS_THRESHOLD. Milestones and finished tasks are never at risk.
    """
    if task.is_milestone or task.progress >= 100:
        return False
    days = days_until_due(task, now)
    return days < 0 or (days <= RISK_WINDOW_DAYS and task.progress < RISK_PROGRESS_THRESHOLD)


def tasks_at_risk(tasks: Iterable[Task], now: datetime | None = None) -> list[Task]:
    at = _now(now)
    return [t for t in tasks if is_at_risk(t, at)]


def upcoming_milestones(tasks: Iterable[Task], now: datetime | None = None) -> list[Task]:
    at = _now(now)
    found = [t for t in tasks if t.is_milestone and t.start >= at]
    return sorted(found, key=lambda t: t.start)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def average_progress(tasks: Iterable[Task]) -> int:
    """Mean progress of non-milestone tasks, rounded half-up; 0 for an empty set."""
    progresses = [t.progress for t in tasks if not t.is_milestone]
    return _round_half_up(sum(progresses) / max(1, len(progresses)))


def rollup_progress(tasks: Iterable[Task], parent_id: str) -> int:
    """Average progress of a summary task's direct children."""
    return average_progress(t for t in tasks if t.parent_id == parent_id)


def summarize(tasks: Iterable[Task]) -> dict[str, Any]:
    task_list = list(tasks)
    return {
        "totalTasks": sum(1 for t in task_list if t.kind != TaskKind.MILESTONE),
        "totalMilestones": sum(1 for t in task_list if t.kind == TaskKind.MILESTONE),
        "completed": sum(1 for t in task_list if t.progress == 100),
        "averageProgress": average_progress(task_list),
    }
