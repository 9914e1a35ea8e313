# tests/conftest.py

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from ganttline.cli.bootstrap import create_initial_state
from ganttline.core.state import AppState
from ganttline.timeline.mutations import MutationProtocol
from ganttline.timeline.task_models import load, load_projects
from ganttline.timeline.timeline_state import TimelineState

from .fakes import FakeTaskStore

PROJECTS = [{"projectId": "p1", "name": "Website", "status": "IN_PROGRESS"}]


def make_record(task_id: str, text: str, start: str, end: str, **extra) -> dict:
    record = {
        "taskId": task_id,
        "text": text,
        "startDate": start,
        "endDate": end,
        "projectId": "p1",
    }
    record.update(extra)
    return record


@pytest.fixture()
def records() -> list[dict]:
    """
    A small plan:
      A "Design"  2024-01-01..05, done
      B "Build"   2024-01-05..10, 50%, depends on A (finish -> start)
      C "Test"    2024-01-10..12, not started
      M "Launch"  milestone on 2024-01-15, depends on B and C
    """
    return [
        make_record("A", "Design", "2024-01-01T00:00:00.000Z", "2024-01-05T00:00:00.000Z", progress=100),
        make_record(
            "B",
            "Build",
            "2024-01-05T00:00:00.000Z",
            "2024-01-10T00:00:00.000Z",
            progress=50,
            dependencies=[{"taskId": "A", "type": "e2s"}],
        ),
        make_record("C", "Test", "2024-01-10T00:00:00.000Z", "2024-01-12T00:00:00.000Z"),
        make_record(
            "M",
            "Launch",
            "2024-01-15T00:00:00.000Z",
            "2024-01-15T00:00:00.000Z",
            type="milestone",
            duration=0,
            dependencies=[{"taskId": "B", "type": "e2s"}, {"taskId": "C", "type": "e2e"}],
        ),
    ]


@pytest.fixture()
def now() -> datetime:
    return datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def store(records: list[dict]) -> FakeTaskStore:
    return FakeTaskStore.seeded(records, projects=PROJECTS)


@pytest.fixture()
def timeline(records: list[dict]) -> TimelineState:
    state = TimelineState(projects=tuple(load_projects(PROJECTS)))
    state.replace_tasks(load(records))
    return state


@pytest.fixture()
def protocol(timeline: TimelineState, store: FakeTaskStore) -> MutationProtocol:
    return MutationProtocol(timeline, store, projects=store)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the CLI.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="ganttline-test",
        log_level="DEBUG",
        console_enabled=False,
        store_base_url="",
        store_api_token=None,
        store_timeout_seconds=5.0,
        default_project_id=None,
        data_dir=tmp_path / "data",
        export_dir=tmp_path / "exports",
    )


@pytest.fixture()
def state(settings: SimpleNamespace, store: FakeTaskStore, records: list[dict]) -> AppState:
    """AppState wired with the fake store and the sample plan already loaded."""
    app = create_initial_state(settings=settings, store=store)
    app.timeline.replace_tasks(load(records))
    app.timeline.projects = tuple(load_projects(PROJECTS))
    return app
