# tests/test_analytics.py

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from ganttline.timeline.analytics import (
    TaskStatus,
    average_progress,
    classify_status,
    days_until_due,
    is_at_risk,
    rollup_progress,
    summarize,
    tasks_at_risk,
    upcoming_milestones,
)
from ganttline.timeline.task_models import TaskKind


def test_tasks_at_risk_uses_due_window_and_progress(timeline, now) -> None:
    # B ends in 1.5 days at 50%; C ends in 3.5 days (rounded up to 4).
    assert days_until_due(timeline.task("B"), now) == 2
    assert days_until_due(timeline.task("C"), now) == 4
    assert [t.id for t in tasks_at_risk(timeline.tasks, now)] == ["B"]


def test_overdue_unfinished_task_is_at_risk(timeline, now) -> None:
    late = replace(timeline.task("B"), end=now - timedelta(days=2), progress=90)
    assert is_at_risk(late, now)


@pytest.mark.parametrize(
    "changes",
    [
        {"progress": 100},
        {"progress": 75},
        {"kind": TaskKind.MILESTONE},
    ],
)
def test_not_at_risk(timeline, now, changes) -> None:
    task = replace(timeline.task("B"), **changes)
    assert not is_at_risk(task, now)


def test_due_exactly_three_days_out_is_at_risk(timeline, now) -> None:
    task = replace(timeline.task("C"), end=now + timedelta(days=3), progress=10)
    assert is_at_risk(task, now)


def test_average_progress_ignores_milestones(timeline) -> None:
    tasks = [
        replace(timeline.task("A"), progress=0),
        replace(timeline.task("B"), progress=50),
        replace(timeline.task("C"), progress=100),
        replace(timeline.task("M"), progress=100),
    ]
    assert average_progress(tasks) == 50


def test_average_progress_empty_and_rounding(timeline) -> None:
    assert average_progress([]) == 0
    assert average_progress([timeline.task("M")]) == 0

    a = timeline.task("A")
    # (0 + 0 + 1 + 100) / 4 = 25.25 ; (0 + 1) / 2 = 0.5 rounds up
    assert average_progress([replace(a, progress=p) for p in (0, 0, 1, 100)]) == 25
    assert average_progress([replace(a, progress=p) for p in (0, 1)]) == 1


@pytest.mark.parametrize(
    "progress,status",
    [
        (0, TaskStatus.NOT_STARTED),
        (1, TaskStatus.IN_PROGRESS),
        (99, TaskStatus.IN_PROGRESS),
        (100, TaskStatus.COMPLETED),
    ],
)
def test_classify_status(progress, status) -> None:
    assert classify_status(progress) == status


def test_upcoming_milestones_sorted_by_date(timeline, now) -> None:
    m = timeline.task("M")
    early = replace(m, id="M0", start=now + timedelta(days=1), end=now + timedelta(days=1))
    past = replace(m, id="M-1", start=now - timedelta(days=1), end=now - timedelta(days=1))

    found = upcoming_milestones([*timeline.tasks, early, past], now)

    assert [t.id for t in found] == ["M0", "M"]


def test_rollup_progress_over_children(timeline) -> None:
    a = replace(timeline.task("A"), parent_id="S")
    b = replace(timeline.task("B"), parent_id="S")
    assert rollup_progress([a, b, timeline.task("C")], "S") == 75
    assert rollup_progress([a, b], "other") == 0


def test_summarize(timeline) -> None:
    assert summarize(timeline.tasks) == {
        "totalTasks": 3,
        "totalMilestones": 1,
        "completed": 1,
        "averageProgress": 50,
    }


def test_analytics_default_to_current_time(timeline) -> None:
    far = replace(
        timeline.task("C"),
        start=datetime.now(timezone.utc) + timedelta(days=30),
        end=datetime.now(timezone.utc) + timedelta(days=40),
    )
    assert not is_at_risk(far)
