# src/ganttline/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any, cast

from ..core.errors import GanttlineError, ValidationError
from ..core.state import AppState
from ..timeline.analytics import (
    average_progress,
    classify_status,
    days_until_due,
    rollup_progress,
    tasks_at_risk,
    upcoming_milestones,
)
from ..timeline.dependency_graph import LINK_TYPE_LABELS
from ..timeline.export import export_csv, export_json, parse_filters
from ..timeline.task_models import Task, TaskKind, format_day, parse_instant
from .bootstrap import write_export

CommandEmitter = Callable[[str], None]
CommandResult = str | Awaitable[str]
CommandHandler2 = Callable[[AppState, list[str]], CommandResult]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], CommandResult]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Domain errors (validation, invalid link, failed mutation) are rendered
        as a one-line reply; anything else propagates to the connector.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        try:
            if nparams >= 3:
                result: Any = cast(CommandHandler3, handler)(state, args, emit)
            else:
                result = cast(CommandHandler2, handler)(state, args)
            if inspect.isawaitable(result):
                result = await result
        except GanttlineError as exc:
            logger.debug("/%s rejected: %s", name, exc)
            return f"[ERROR] {exc}"
        return str(result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_args(args: list[str], count: int, usage: str) -> None:
    if len(args) < count:
        raise ValidationError(f"Usage: {usage}")


def _task_line(state: AppState, task: Task) -> str:
    saving = " (saving...)" if state.timeline.saving_task_id == task.id else ""
    # Summary bars show the average of their direct children.
    progress = task.progress
    if task.kind == TaskKind.SUMMARY:
        progress = rollup_progress(state.timeline.tasks, task.id)
    if task.is_milestone:
        span = format_day(task.start)
    else:
        span = f"{format_day(task.start)}..{format_day(task.end)}"
    return (
        f"{task.id:<10} [{task.kind.value}] {task.text}  {span}  "
        f"{progress}% {classify_status(progress).value}{saving}"
    )


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    settings = state.settings
    backend = getattr(settings, "store_base_url", "") or "offline demo store"
    timeline = state.timeline
    return (
        "Status:\n"
        f"  Store: {backend}\n"
        f"  Project: {state.project_id or 'all'}\n"
        f"  Tasks: {len(timeline.tasks)}  Links: {len(timeline.graph)}\n"
        f"  Filters: type={state.kind_filter.value} status={state.status_filter.value}\n"
        f"  Average progress: {average_progress(state.visible_tasks())}%\n"
        f"  Saving: {timeline.saving_task_id or '-'}\n"
        f"  Last error: {timeline.last_error or '-'}"
    )


async def cmd_load(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /load          -> reload the current project
    /load all      -> all projects
    /load <id>     -> one project
    """
    if args:
        state.project_id = None if args[0].lower() == "all" else args[0]
    if emit:
        emit("Loading timeline...")
    await state.mutations.load(state.project_id)
    return f"Loaded {len(state.timeline.tasks)} task(s), {len(state.timeline.graph)} link(s)."


def cmd_tasks(state: AppState, args: list[str]) -> str:
    tasks = sorted(state.visible_tasks(), key=lambda t: (t.order, t.start))
    if not tasks:
        return "No tasks match the current filters."
    return "\n".join(_task_line(state, t) for t in tasks)


def cmd_links(state: AppState, args: list[str]) -> str:
    """
    /links          -> every link
    /links <task>   -> incoming and outgoing links of one task
    /links <link>   -> one link by id
    """
    graph = state.timeline.graph

    def fmt(link) -> str:
        return f"{link.id}: {link.source_id} -> {link.target_id} ({LINK_TYPE_LABELS[link.type]})"

    if args and args[0] in graph:
        return fmt(graph.get(args[0]))

    if args:
        incoming = graph.incoming(args[0])
        outgoing = graph.outgoing(args[0])
        lines = [f"Depends on ({len(incoming)}):", *(f"  {fmt(edge)}" for edge in incoming)]
        lines += [f"Blocks ({len(outgoing)}):", *(f"  {fmt(edge)}" for edge in outgoing)]
        return "\n".join(lines)

    if not len(graph):
        return "No dependencies."
    return "\n".join(fmt(edge) for edge in graph.links)


def cmd_risk(state: AppState, args: list[str]) -> str:
    now = _now()
    risky = tasks_at_risk(state.timeline.tasks, now)
    if not risky:
        return "No tasks at risk."
    lines = [f"{len(risky)} task(s) at risk:"]
    for t in risky:
        days = days_until_due(t, now)
        due = f"overdue by {-days}d" if days < 0 else f"due in {days}d"
        lines.append(f"  {t.id} {t.text} ({t.progress}%, {due})")
    return "\n".join(lines)


def cmd_milestones(state: AppState, args: list[str]) -> str:
    upcoming = upcoming_milestones(state.timeline.tasks, _now())
    if not upcoming:
        return "No upcoming milestones."
    lines = [f"{len(upcoming)} upcoming milestone(s):"]
    lines += [f"  {format_day(m.start)} {m.text}" for m in upcoming]
    return "\n".join(lines)


def cmd_projects(state: AppState, args: list[str]) -> str:
    projects = state.timeline.projects
    if not projects:
        return "No projects loaded."
    lines = []
    for p in projects:
        count = sum(1 for t in state.timeline.tasks if t.project_id == p.project_id)
        marker = " *" if p.project_id == state.project_id else ""
        lines.append(f"{p.project_id:<12} {p.name} [{p.status or '-'}] {count} task(s){marker}")
    return "\n".join(lines)


def cmd_filter(state: AppState, args: list[str]) -> str:
    """/filter <all|task|milestone> [all|completed|in-progress|not-started]"""
    if not args:
        return f"Filters: type={state.kind_filter.value} status={state.status_filter.value}"
    kind, status = parse_filters(args[0], args[1] if len(args) > 1 else state.status_filter.value)
    state.kind_filter = kind
    state.status_filter = status
    return f"Filters set: type={kind.value} status={status.value} ({len(state.visible_tasks())} task(s))"


async def cmd_add(state: AppState, args: list[str]) -> str:
    _require_args(args, 3, "/add <start> <end> <name...>")
    task = await state.mutations.create_task(
        {
            "text": " ".join(args[2:]),
            "start": args[0],
            "end": args[1],
            "project_id": state.project_id,
        }
    )
    return f"Created {_task_line(state, task)}"


async def cmd_milestone(state: AppState, args: list[str]) -> str:
    _require_args(args, 2, "/milestone <date> <name...>")
    task = await state.mutations.create_milestone(state.project_id, " ".join(args[1:]), args[0])
    return f"Created {_task_line(state, task)}"


async def cmd_move(state: AppState, args: list[str]) -> str:
    """/move <task> <new-start>: shift the whole bar, keeping its length."""
    _require_args(args, 2, "/move <task> <new-start>")
    task = state.timeline.task(args[0])
    if task is None:
        raise ValidationError(f"Unknown task: {args[0]}")
    new_start = parse_instant(args[1])
    gesture = state.mutations.begin_gesture(task.id)
    moved = await state.mutations.commit_gesture(
        gesture, {"start": new_start, "end": task.end + (new_start - task.start)}
    )
    return f"Moved {_task_line(state, moved)}"


async def cmd_resize(state: AppState, args: list[str]) -> str:
    _require_args(args, 2, "/resize <task> <new-end>")
    gesture = state.mutations.begin_gesture(args[0])
    resized = await state.mutations.commit_gesture(gesture, {"end": args[1]})
    return f"Resized {_task_line(state, resized)}"


async def cmd_progress(state: AppState, args: list[str]) -> str:
    _require_args(args, 2, "/progress <task> <0-100>")
    try:
        value = int(args[1])
    except ValueError as exc:
        raise ValidationError("Progress must be an integer 0..100") from exc
    task = await state.mutations.update_progress(args[0], value)
    return f"Updated {_task_line(state, task)}"


_EDITABLE = {"text": "text", "name": "text", "notes": "notes", "type": "kind", "project": "project_id"}


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <task> field=value ... (fields: name, notes, type, project, start, end, progress)"""
    _require_args(args, 2, "/edit <task> field=value ...")
    fields: dict[str, Any] = {}
    for pair in args[1:]:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValidationError(f"Expected field=value, got {pair!r}")
        fields[_EDITABLE.get(key, key)] = value
    task = await state.mutations.edit_task(args[0], fields)
    return f"Saved {_task_line(state, task)}"


async def cmd_link(state: AppState, args: list[str]) -> str:
    _require_args(args, 2, "/link <predecessor> <successor> [e2s|s2s|e2e|s2e]")
    link = await state.mutations.add_link(args[0], args[1], args[2] if len(args) > 2 else "e2s")
    return f"Linked {link.source_id} -> {link.target_id} ({LINK_TYPE_LABELS[link.type]})"


async def cmd_unlink(state: AppState, args: list[str]) -> str:
    _require_args(args, 1, "/unlink <link-id>")
    link = await state.mutations.delete_link(args[0])
    return f"Removed dependency {link.source_id} -> {link.target_id}"


async def cmd_delete(state: AppState, args: list[str]) -> str:
    _require_args(args, 1, "/delete <task>")
    await state.mutations.delete_task(args[0])
    return f"Deleted {args[0]}"


async def cmd_reorder(state: AppState, args: list[str]) -> str:
    _require_args(args, 1, "/reorder <task> [<task> ...]")
    await state.mutations.reorder(args)
    return f"Reordered {len(args)} task(s)."


def cmd_export(state: AppState, args: list[str]) -> str:
    """/export csv | /export json (exports the filtered task list)"""
    fmt = args[0].lower() if args else "csv"
    tasks = state.visible_tasks()
    timeline = state.timeline
    if fmt == "csv":
        artifact = export_csv(tasks, timeline.projects)
    elif fmt == "json":
        artifact = export_json(tasks, timeline.links, timeline.projects, all_tasks=timeline.tasks)
    else:
        return "Usage: /export csv | /export json"
    path = write_export(state, artifact)
    return f"Exported {len(tasks)} task(s) to {path}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show store, filters and saving state.")
registry.register("load", cmd_load, help_text="Reload tasks: /load [all|<project>].", aliases=["reload"])
registry.register("tasks", cmd_tasks, help_text="List tasks matching the current filters.", aliases=["ls"])
registry.register("links", cmd_links, help_text="List dependencies: /links [task|link-id].")
registry.register("projects", cmd_projects, help_text="List projects with status and task counts.")
registry.register("risk", cmd_risk, help_text="Show tasks at risk of missing their end date.")
registry.register("milestones", cmd_milestones, help_text="Show upcoming milestones.")
registry.register(
    "filter",
    cmd_filter,
    help_text="Set filters: /filter <all|task|milestone> [all|completed|in-progress|not-started].",
)
registry.register("add", cmd_add, help_text="Create a task: /add <start> <end> <name...>.")
registry.register("milestone", cmd_milestone, help_text="Create a milestone: /milestone <date> <name...>.")
registry.register("move", cmd_move, help_text="Move a task: /move <task> <new-start>.")
registry.register("resize", cmd_resize, help_text="Change a task's end: /resize <task> <new-end>.")
registry.register("progress", cmd_progress, help_text="Set progress: /progress <task> <0-100>.")
registry.register("edit", cmd_edit, help_text="Edit fields: /edit <task> name=... notes=... type=...")
registry.register("link", cmd_link, help_text="Add dependency: /link <pred> <succ> [type].")
registry.register("unlink", cmd_unlink, help_text="Remove dependency: /unlink <link-id>.")
registry.register("delete", cmd_delete, help_text="Delete a task and its links: /delete <task>.", aliases=["rm"])
registry.register("reorder", cmd_reorder, help_text="Set display order: /reorder <task> <task> ...")
registry.register("export", cmd_export, help_text="Export filtered tasks: /export csv | /export json.")
