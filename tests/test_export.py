# tests/test_export.py

from __future__ import annotations

import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from ganttline.core.errors import ValidationError
from ganttline.timeline.export import (
    CSV_HEADERS,
    KindFilter,
    StatusFilter,
    export_csv,
    export_json,
    filter_tasks,
    parse_filters,
    to_csv,
    to_json,
)
from ganttline.timeline.task_models import load

from .conftest import make_record

NOW = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)


def test_csv_rows_are_quoted_with_project_fallback() -> None:
    tasks = load(
        [
            make_record(
                "A",
                "Design",
                "2024-01-01T00:00:00.000Z",
                "2024-01-05T00:00:00.000Z",
                progress=100,
                projectId="nope",
            )
        ]
    )

    lines = to_csv(tasks).split("\n")

    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == '"Design","task","Unknown","2024-01-01","2024-01-05","100%","Completed"'


def test_csv_doubles_embedded_quotes(timeline) -> None:
    task = replace(timeline.task("C"), text='Say "hi", then test')
    line = to_csv([task], timeline.projects).split("\n")[1]
    assert line.startswith('"Say ""hi"", then test","task","Website",')
    assert line.endswith('"0%","Not Started"')


def test_json_resolves_predecessor_names(timeline) -> None:
    doc = to_json(timeline.tasks, timeline.links, timeline.projects, now=NOW)

    assert doc["exportedAt"] == "2024-03-05T09:30:00.000Z"
    by_id = {entry["id"]: entry for entry in doc["tasks"]}
    assert by_id["B"]["dependencies"] == [{"dependsOn": "Design", "type": "e2s"}]
    assert by_id["M"]["dependencies"] == [
        {"dependsOn": "Build", "type": "e2s"},
        {"dependsOn": "Test", "type": "e2e"},
    ]
    assert by_id["A"]["project"] == "Website"
    assert by_id["A"]["startDate"] == "2024-01-01T00:00:00.000Z"
    assert doc["summary"]["averageProgress"] == 50


def test_json_of_filtered_set_looks_up_names_in_all_tasks(timeline) -> None:
    only_b = [timeline.task("B")]
    doc = to_json(only_b, timeline.links, timeline.projects, all_tasks=timeline.tasks, now=NOW)
    assert doc["tasks"][0]["dependencies"] == [{"dependsOn": "Design", "type": "e2s"}]

    without_names = to_json(only_b, timeline.links, now=NOW)
    assert without_names["tasks"][0]["dependencies"] == [{"dependsOn": "A", "type": "e2s"}]


def ids(tasks) -> list[str]:
    return [t.id for t in tasks]


def test_filters_by_kind_and_status(timeline) -> None:
    assert ids(filter_tasks(timeline.tasks)) == ["A", "B", "C", "M"]
    assert ids(filter_tasks(timeline.tasks, KindFilter.TASK)) == ["A", "B", "C"]
    assert ids(filter_tasks(timeline.tasks, "milestone")) == ["M"]
    assert ids(filter_tasks(timeline.tasks, status=StatusFilter.COMPLETED)) == ["A"]
    assert ids(filter_tasks(timeline.tasks, "task", "not-started")) == ["C"]
    assert ids(filter_tasks(timeline.tasks, status="in-progress")) == ["B"]


def test_parse_filters_rejects_unknown_values() -> None:
    assert parse_filters(None, "") == (KindFilter.ALL, StatusFilter.ALL)
    with pytest.raises(ValidationError):
        parse_filters("epic", None)


def test_export_artifacts(timeline) -> None:
    csv_artifact = export_csv(timeline.tasks, timeline.projects, now=NOW)
    assert csv_artifact.filename == "gantt-tasks-2024-03-05.csv"
    assert csv_artifact.content_type.startswith("text/csv")
    assert csv_artifact.data.decode("utf-8").count("\n") == 4

    json_artifact = export_json(timeline.tasks, timeline.links, timeline.projects, now=NOW)
    assert json_artifact.filename == "gantt-export-2024-03-05.json"
    assert json_artifact.content_type == "application/json"
    assert len(json.loads(json_artifact.data)["tasks"]) == 4


def test_export_is_deterministic_for_fixed_time(timeline) -> None:
    first = export_json(timeline.tasks, timeline.links, timeline.projects, now=NOW)
    second = export_json(timeline.tasks, timeline.links, timeline.projects, now=NOW)
    assert first == second
