# src/ganttline/timeline/task_models.py

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timezone
from enum import StrEnum
from typing import Any

from ..core.errors import ValidationError

logger = logging.getLogger(__name__)

DAY_SECONDS = 24 * 60 * 60


class TaskKind(StrEnum):
    TASK = "task"
    MILESTONE = "milestone"
    SUMMARY = "summary"  # groups children via parent_id

    @classmethod
    def from_wire(cls, raw: str | None) -> TaskKind:
        if not raw:
            return cls.TASK
        try:
            return cls(raw)
        except ValueError:
            return cls.TASK


class LinkType(StrEnum):
    """
    Precedence link type, named after the endpoints it relates.

    e2s = finish -> start (the default), s2s = start -> start,
    e2e = finish -> finish, s2e = start -> finish.
    """

    FINISH_TO_START = "e2s"
    START_TO_START = "s2s"
    FINISH_TO_FINISH = "e2e"
    START_TO_FINISH = "s2e"

    @classmethod
    def from_wire(cls, raw: str | None) -> LinkType:
        if not raw:
            return cls.FINISH_TO_START
        try:
            return cls(raw)
        except ValueError:
            logger.warning("Unknown link type %r; using e2s", raw)
            return cls.FINISH_TO_START


@dataclass(frozen=True, slots=True)
class Dependency:
    """One entry of a successor task's predecessor list."""

    task_id: str
    type: LinkType = LinkType.FINISH_TO_START

    def to_record(self) -> dict[str, str]:
        return {"taskId": self.task_id, "type": self.type.value}


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    text: str
    kind: TaskKind
    start: datetime
    end: datetime

    duration: int = 1
    progress: int = 0

    project_id: str | None = None
    parent_id: str | None = None
    notes: str = ""
    order: int = 0
    color: str | None = None

    dependencies: tuple[Dependency, ...] = ()

    @property
    def is_milestone(self) -> bool:
        return self.kind == TaskKind.MILESTONE


@dataclass(frozen=True, slots=True)
class Project:
    project_id: str
    name: str
    status: str | None = None


PATCHABLE_FIELDS = frozenset(
    {
        "text",
        "kind",
        "start",
        "end",
        "duration",
        "progress",
        "project_id",
        "parent_id",
        "notes",
        "order",
        "color",
        "dependencies",
    }
)

# Engine field name -> store wire key.
_WIRE_KEYS = {
    "text": "text",
    "kind": "type",
    "start": "startDate",
    "end": "endDate",
    "duration": "duration",
    "progress": "progress",
    "project_id": "projectId",
    "parent_id": "parent",
    "notes": "notes",
    "order": "order",
    "color": "color",
    "dependencies": "dependencies",
}


# ---- instants ----


def parse_instant(value: Any) -> datetime:
    """
    Parse a datetime, date or ISO-8601 string into an aware UTC-based instant.

    Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime.combine(value, time.min)
    elif isinstance(value, str) and value.strip():
        try:
            dt = datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValidationError(f"Invalid date: {value!r}") from exc
    else:
        raise ValidationError(f"Invalid date: {value!r}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def format_instant(dt: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a Z suffix (2024-01-01T00:00:00.000Z)."""
    utc = dt.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def format_day(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%d")


def span_days(start: datetime, end: datetime) -> int:
    return math.ceil((end - start).total_seconds() / DAY_SECONDS)


# ---- loading ----


def _optional_str(value: Any) -> str | None:
    if value is None or value == "" or value == 0:
        return None
    return str(value)


def _parse_dependencies(raw: Any) -> tuple[Dependency, ...]:
    if not raw:
        return ()
    out: list[Dependency] = []
    for item in raw:
        # Legacy records store bare predecessor ids.
        if isinstance(item, str):
            out.append(Dependency(item))
        elif isinstance(item, Mapping) and item.get("taskId"):
            out.append(Dependency(str(item["taskId"]), LinkType.from_wire(item.get("type"))))
        else:
            logger.warning("Skipping malformed dependency entry: %r", item)
    return tuple(out)


def task_from_record(raw: Mapping[str, Any]) -> Task:
    """Parse one backend record. Raises ValidationError if it has no id or bad dates."""
    task_id = raw.get("taskId")
    if not task_id:
        raise ValidationError("Task record has no taskId")

    start = parse_instant(raw.get("startDate"))
    end = parse_instant(raw.get("endDate"))
    kind = TaskKind.from_wire(raw.get("type"))

    duration = int(raw.get("duration") or 1)
    if kind == TaskKind.MILESTONE:
        end = start
        duration = 0
    elif end < start:
        logger.warning("Task %s ends before it starts; clamping end to start", task_id)
        end = start

    progress = int(raw.get("progress") or 0)

    return Task(
        id=str(task_id),
        text=str(raw.get("text") or ""),
        kind=kind,
        start=start,
        end=end,
        duration=duration,
        progress=max(0, min(100, progress)),
        project_id=_optional_str(raw.get("projectId")),
        parent_id=_optional_str(raw.get("parent")),
        notes=str(raw.get("notes") or ""),
        order=int(raw.get("order") or 0),
        color=raw.get("color") or None,
        dependencies=_parse_dependencies(raw.get("dependencies")),
    )


def load(raw_tasks: Iterable[Mapping[str, Any]]) -> list[Task]:
    """Parse backend records into Tasks, skipping (and logging) unusable ones."""
    tasks: list[Task] = []
    for raw in raw_tasks:
        try:
            tasks.append(task_from_record(raw))
        except (ValidationError, TypeError, ValueError) as exc:
            logger.warning("Skipping task record %r: %s", raw.get("taskId"), exc)
    return tasks


def project_from_record(raw: Mapping[str, Any]) -> Project:
    return Project(
        project_id=str(raw.get("projectId") or ""),
        name=str(raw.get("name") or "Unknown"),
        status=raw.get("status"),
    )


def load_projects(raw_projects: Iterable[Mapping[str, Any]]) -> list[Project]:
    return [project_from_record(p) for p in raw_projects if p.get("projectId")]


# ---- patching ----


def _coerce_dependency(item: Any) -> Dependency:
    if isinstance(item, Dependency):
        return item
    if isinstance(item, str) and item:
        return Dependency(item)
    if isinstance(item, Mapping):
        task_id = item.get("taskId") or item.get("task_id")
        if task_id:
            try:
                link_type = LinkType(item.get("type") or LinkType.FINISH_TO_START)
            except ValueError as exc:
                raise ValidationError(f"Unknown link type: {item.get('type')!r}") from exc
            return Dependency(str(task_id), link_type)
    raise ValidationError(f"Invalid dependency entry: {item!r}")


def _coerce_field(name: str, value: Any) -> Any:
    if name == "text":
        text = str(value or "").strip()
        if not text:
            raise ValidationError("Task name must not be empty")
        return text

    if name == "kind":
        try:
            return TaskKind(value)
        except ValueError as exc:
            raise ValidationError(f"Unknown task type: {value!r}") from exc

    if name in ("start", "end"):
        return parse_instant(value)

    if name in ("duration", "order"):
        try:
            number = int(value)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"{name} must be an integer") from exc
        if name == "duration" and number < 0:
            raise ValidationError("duration must not be negative")
        return number

    if name == "progress":
        if isinstance(value, bool):
            raise ValidationError("progress must be a number")
        try:
            progress = int(round(float(value)))
        except (TypeError, ValueError) as exc:
            raise ValidationError("progress must be a number") from exc
        if not 0 <= progress <= 100:
            raise ValidationError(f"progress must be within 0..100, got {progress}")
        return progress

    if name in ("project_id", "parent_id", "color"):
        return None if value in (None, "") else str(value)

    if name == "notes":
        return "" if value is None else str(value)

    if name == "dependencies":
        return tuple(_coerce_dependency(item) for item in (value or ()))

    raise ValidationError(f"Unknown task field: {name}")


def apply_patch(task: Task, fields: Mapping[str, Any]) -> Task:
    """
    Return an updated copy of `task`.

    Milestones always keep end == start and duration == 0. For other kinds,
    end < start raises ValidationError; when dates move without an explicit
    duration, duration is recomputed as the span in whole days.
    """
    unknown = set(fields) - PATCHABLE_FIELDS
    if unknown:
        raise ValidationError(f"Unknown task field(s): {', '.join(sorted(unknown))}")

    changes = {name: _coerce_field(name, value) for name, value in fields.items()}
    updated = replace(task, **changes)

    if updated.kind == TaskKind.MILESTONE:
        return replace(updated, end=updated.start, duration=0)

    if updated.end < updated.start:
        raise ValidationError(
            f"End date {format_day(updated.end)} is before start date {format_day(updated.start)}"
        )

    dates_moved = updated.start != task.start or updated.end != task.end
    if dates_moved and "duration" not in fields:
        updated = replace(updated, duration=span_days(updated.start, updated.end))
    return updated


def draft_task(fields: Mapping[str, Any]) -> Task:
    """Validate creation fields into an id-less Task (same rules as apply_patch)."""
    missing = [name for name in ("text", "start", "end") if fields.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required field(s): {', '.join(missing)}")
    start = parse_instant(fields["start"])
    base = Task(id="", text="draft", kind=TaskKind.TASK, start=start, end=start, duration=0)
    return apply_patch(base, fields)


def diff_fields(before: Task, after: Task) -> dict[str, Any]:
    """Patchable fields whose value differs between two versions of a task."""
    return {
        name: getattr(after, name)
        for name in sorted(PATCHABLE_FIELDS)
        if getattr(before, name) != getattr(after, name)
    }


# ---- serialization ----


def _wire_value(name: str, value: Any) -> Any:
    if name in ("start", "end"):
        return format_instant(value)
    if name == "kind":
        return TaskKind(value).value
    if name == "dependencies":
        return [dep.to_record() for dep in value]
    return value


def patch_to_record(fields: Mapping[str, Any]) -> dict[str, Any]:
    """Translate engine field names/values into the store's wire shape."""
    return {_WIRE_KEYS[name]: _wire_value(name, value) for name, value in fields.items()}


def task_to_record(task: Task) -> dict[str, Any]:
    record = patch_to_record({name: getattr(task, name) for name in sorted(PATCHABLE_FIELDS)})
    if task.id:
        record["taskId"] = task.id
    return record
