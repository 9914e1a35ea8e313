# src/ganttline/timeline/export.py

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError
from .analytics import TaskStatus, classify_status, summarize
from .dependency_graph import Link
from .task_models import Project, Task, TaskKind, format_day, format_instant

CSV_HEADERS = ["Task Name", "Type", "Project", "Start Date", "End Date", "Progress", "Status"]
UNKNOWN_PROJECT = "Unknown"


class KindFilter(StrEnum):
    ALL = "all"
    TASK = "task"  # everything except milestones
    MILESTONE = "milestone"


class StatusFilter(StrEnum):
    ALL = "all"
    COMPLETED = "completed"
    IN_PROGRESS = "in-progress"
    NOT_STARTED = "not-started"


_STATUS_FOR_FILTER = {
    StatusFilter.COMPLETED: TaskStatus.COMPLETED,
    StatusFilter.IN_PROGRESS: TaskStatus.IN_PROGRESS,
    StatusFilter.NOT_STARTED: TaskStatus.NOT_STARTED,
}


@dataclass(frozen=True, slots=True)
class ExportArtifact:
    filename: str
    content_type: str
    data: bytes


def parse_filters(kind: str | None, status: str | None) -> tuple[KindFilter, StatusFilter]:
    try:
        return KindFilter(kind or "all"), StatusFilter(status or "all")
    except ValueError as exc:
        raise ValidationError(f"Unknown filter: {exc}") from exc


def filter_tasks(
    tasks: Iterable[Task],
    kind: KindFilter | str = KindFilter.ALL,
    status: StatusFilter | str = StatusFilter.ALL,
) -> list[Task]:
    """Non-destructive type/status narrowing. Reapply after every state change."""
    kind, status = parse_filters(kind, status)
    out: list[Task] = []
    for t in tasks:
        if kind == KindFilter.TASK and t.kind == TaskKind.MILESTONE:
            continue
        if kind == KindFilter.MILESTONE and t.kind != TaskKind.MILESTONE:
            continue
        if status != StatusFilter.ALL and classify_status(t.progress) != _STATUS_FOR_FILTER[status]:
            continue
        out.append(t)
    return out


def _project_names(projects: Iterable[Project]) -> dict[str, str]:
    return {p.project_id: p.name for p in projects}


def _quote(cell: Any) -> str:
    return '"' + str(cell).replace('"', '""') + '"'


def to_csv(tasks: Iterable[Task], projects: Iterable[Project] = ()) -> str:
    names = _project_names(projects)
    lines = [",".join(CSV_HEADERS)]
    for t in tasks:
        row = [
            t.text,
            t.kind.value,
            names.get(t.project_id or "", UNKNOWN_PROJECT),
            format_day(t.start),
            format_day(t.end),
            f"{t.progress}%",
            classify_status(t.progress).value,
        ]
        lines.append(",".join(_quote(cell) for cell in row))
    return "\n".join(lines)


def to_json(
    tasks: Iterable[Task],
    links: Iterable[Link],
    projects: Iterable[Project] = (),
    *,
    all_tasks: Iterable[Task] | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """
    Build the JSON export document.

    `tasks` is the (filtered) set being exported; predecessor names are
    resolved against `all_tasks` (defaults to `tasks`) and fall back to the
    raw predecessor id.
    """
    task_list = list(tasks)
    link_list = list(links)
    names = _project_names(projects)
    text_by_id = {t.id: t.text for t in (task_list if all_tasks is None else all_tasks)}
    exported_at = now if now is not None else datetime.now(timezone.utc)

    entries = []
    for t in task_list:
        entries.append(
            {
                "id": t.id,
                "name": t.text,
                "type": t.kind.value,
                "project": names.get(t.project_id or "", UNKNOWN_PROJECT),
                "startDate": format_instant(t.start),
                "endDate": format_instant(t.end),
                "progress": t.progress,
                "dependencies": [
                    {"dependsOn": text_by_id.get(link.source_id, link.source_id), "type": link.type.value}
                    for link in link_list
                    if link.target_id == t.id
                ],
            }
        )

    return {
        "exportedAt": format_instant(exported_at),
        "tasks": entries,
        "summary": summarize(task_list),
    }


def export_csv(
    tasks: Iterable[Task],
    projects: Iterable[Project] = (),
    *,
    now: datetime | None = None,
) -> ExportArtifact:
    stamp = format_day(now if now is not None else datetime.now(timezone.utc))
    body = to_csv(tasks, projects)
    return ExportArtifact(
        filename=f"gantt-tasks-{stamp}.csv",
        content_type="text/csv;charset=utf-8",
        data=body.encode("utf-8"),
    )


def export_json(
    tasks: Iterable[Task],
    links: Iterable[Link],
    projects: Iterable[Project] = (),
    *,
    all_tasks: Iterable[Task] | None = None,
    now: datetime | None = None,
) -> ExportArtifact:
    at = now if now is not None else datetime.now(timezone.utc)
    doc = to_json(tasks, links, projects, all_tasks=all_tasks, now=at)
    return ExportArtifact(
        filename=f"gantt-export-{format_day(at)}.json",
        content_type="application/json",
        data=json.dumps(doc, ensure_ascii=False, indent=2).encode("utf-8"),
    )
