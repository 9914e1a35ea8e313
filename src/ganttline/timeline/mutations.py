# src/ganttline/timeline/mutations.py

from __future__ import annotations

"""
Mutation protocol.

Every write to the timeline goes through MutationProtocol, which keeps the
local TimelineState consistent with the remote task store:

- gestures (drag-move, drag-resize) are two-phase: provisional updates are
  applied locally only, the terminal commit issues one remote update;
- optimistic writes (gestures, progress drag, link creation, reorder) are
  applied first and reverted if the store call fails;
- non-optimistic writes (link deletion, task deletion, create, edit) touch
  local state only after the store confirms.

Each mutation bumps a per-task generation number. A completion whose
generation is no longer current (a newer gesture superseded it) neither
rolls back local state nor clears the saving indicator; the indicator
follows the current mutation, so one that settles without a store call
(cancel, no-op commit, rejected fields) clears it.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from ..core.errors import DeletionError, MutationFailedError, ValidationError
from ..core.ports import ProjectDirectory, TaskStore
from .dependency_graph import Link, link_id
from .task_models import (
    LinkType,
    Task,
    TaskKind,
    apply_patch,
    diff_fields,
    draft_task,
    load as load_tasks,
    load_projects,
    patch_to_record,
    task_from_record,
    task_to_record,
)
from .timeline_state import MutationPhase, TimelineState

logger = logging.getLogger(__name__)

MSG_SAVE_FAILED = "Failed to save changes. Please try again."
MSG_PROGRESS_FAILED = "Failed to save progress. Please try again."
MSG_LINK_ADD_FAILED = "Failed to add dependency."
MSG_LINK_DELETE_FAILED = "Failed to remove dependency."
MSG_DELETE_FAILED = "Failed to delete task."
MSG_CREATE_FAILED = "Failed to create task."
MSG_ORDER_FAILED = "Failed to save task order."
MSG_LOAD_FAILED = "Failed to load timeline."


@dataclass(slots=True)
class Gesture:
    """An open drag/resize interaction on one task."""

    task_id: str
    before: Task
    generation: int
    closed: bool = False


class MutationProtocol:
    def __init__(
        self,
        state: TimelineState,
        store: TaskStore,
        projects: ProjectDirectory | None = None,
    ) -> None:
        self.state = state
        self._store = store
        self._projects = projects
        self._generations: dict[str, int] = {}
        self._open_gestures: dict[str, Gesture] = {}

    # ---- bookkeeping ----

    def _bump(self, task_id: str) -> int:
        generation = self._generations.get(task_id, 0) + 1
        self._generations[task_id] = generation
        return generation

    def _is_current(self, task_id: str, generation: int) -> bool:
        return self._generations.get(task_id) == generation

    def _require_task(self, task_id: str) -> Task:
        task = self.state.task(task_id)
        if task is None:
            raise ValidationError(f"Unknown task: {task_id}")
        return task

    def _start_saving(self, task_id: str) -> None:
        self.state.saving_task_id = task_id

    def _clear_saving(self, task_id: str) -> None:
        if self.state.saving_task_id == task_id:
            self.state.saving_task_id = None

    def _finish_saving(self, task_id: str, generation: int) -> None:
        if self._is_current(task_id, generation):
            self._clear_saving(task_id)

    def _fail(self, message: str, task_id: str | None) -> MutationFailedError:
        self.state.last_error = message
        return MutationFailedError(message, task_id=task_id)

    async def _persist_optimistic(
        self,
        task_id: str,
        generation: int,
        fields: Mapping[str, Any],
        previous: Mapping[str, Any],
        message: str,
    ) -> None:
        """
        Send an already-applied patch to the store.

        On failure the fields in `previous` are written back, but only while
        this mutation is still the current one for the task.
        """
        self._start_saving(task_id)
        try:
            await self._store.update_task(task_id, patch_to_record(fields))
        except Exception as exc:
            logger.exception("update_task failed task_id=%s fields=%s", task_id, sorted(fields))
            current = self.state.task(task_id)
            if self._is_current(task_id, generation) and current is not None:
                self.state.put_task(replace(current, **previous))
                self.state.phases[task_id] = MutationPhase.ROLLED_BACK
                logger.info("Task %s rolled back", task_id)
            else:
                logger.info("Ignoring stale failure for task %s (generation %s)", task_id, generation)
            raise self._fail(message, task_id) from exc
        else:
            if self._is_current(task_id, generation):
                self.state.phases[task_id] = MutationPhase.COMMITTED
            logger.debug("Task %s committed fields=%s", task_id, sorted(fields))
        finally:
            self._finish_saving(task_id, generation)

    # ---- load ----

    async def load(self, project_id: str | None = None) -> None:
        """Fetch tasks (optionally for one project) and projects, replacing local state."""
        filters = {"projectId": project_id} if project_id else {}
        try:
            if self._projects is not None:
                raw_tasks, raw_projects = await asyncio.gather(
                    self._store.list_tasks(filters),
                    self._projects.list_projects(),
                )
                self.state.projects = tuple(load_projects(raw_projects))
            else:
                raw_tasks = await self._store.list_tasks(filters)
        except Exception:
            logger.exception("Loading timeline failed project_id=%s", project_id)
            self.state.last_error = MSG_LOAD_FAILED
            raise

        self.state.replace_tasks(load_tasks(raw_tasks))
        self.state.phases.clear()
        self._open_gestures.clear()
        self.state.last_error = None
        logger.info(
            "Timeline loaded tasks=%d links=%d projects=%d",
            len(self.state.tasks),
            len(self.state.graph),
            len(self.state.projects),
        )

    # ---- gestures ----

    def begin_gesture(self, task_id: str) -> Gesture:
        task = self._require_task(task_id)
        gesture = Gesture(task_id=task_id, before=task, generation=self._bump(task_id))
        self.state.phases[task_id] = MutationPhase.PENDING
        return gesture

    def update_provisional(self, gesture: Gesture, fields: Mapping[str, Any]) -> Task:
        """Apply an in-progress update locally. Never reaches the store."""
        if gesture.closed:
            raise ValidationError(f"Gesture on task {gesture.task_id} is already finished")
        current = self._require_task(gesture.task_id)
        if not self._is_current(gesture.task_id, gesture.generation):
            logger.debug("Ignoring provisional update from superseded gesture on %s", gesture.task_id)
            return current

        updated = apply_patch(current, fields)
        self.state.put_task(updated)
        return updated

    def cancel_gesture(self, gesture: Gesture) -> None:
        """Abandon a gesture without writing: the task returns to its pre-gesture value."""
        if gesture.closed:
            return
        gesture.closed = True
        self._open_gestures.pop(gesture.task_id, None)
        if self._is_current(gesture.task_id, gesture.generation) and self.state.task(gesture.task_id):
            self.state.put_task(gesture.before)
            self.state.phases[gesture.task_id] = MutationPhase.IDLE
            self._clear_saving(gesture.task_id)

    async def commit_gesture(self, gesture: Gesture, fields: Mapping[str, Any] | None = None) -> Task:
        """
        Settle a gesture: apply the final fields, then persist everything that
        changed since the gesture began. Raises MutationFailedError after rolling
        back if the store rejects the update.
        """
        return await self._commit(gesture, fields, MSG_SAVE_FAILED)

    async def _commit(self, gesture: Gesture, fields: Mapping[str, Any] | None, message: str) -> Task:
        if gesture.closed:
            raise ValidationError(f"Gesture on task {gesture.task_id} is already finished")
        gesture.closed = True
        task_id = gesture.task_id

        current = self._require_task(task_id)
        if not self._is_current(task_id, gesture.generation):
            logger.info("Dropping commit of superseded gesture on task %s", task_id)
            return current

        try:
            settled = apply_patch(current, fields) if fields else current
        except ValidationError as exc:
            self.state.put_task(gesture.before)
            self.state.phases[task_id] = MutationPhase.IDLE
            self.state.last_error = str(exc)
            self._clear_saving(task_id)
            raise

        changes = diff_fields(gesture.before, settled)
        self.state.put_task(settled)

        if not changes:
            self.state.phases[task_id] = MutationPhase.COMMITTED
            self._clear_saving(task_id)
            return settled

        previous = {name: getattr(gesture.before, name) for name in changes}
        await self._persist_optimistic(task_id, gesture.generation, changes, previous, message)
        return settled

    async def handle_task_update(
        self,
        task_id: str,
        fields: Mapping[str, Any],
        *,
        in_progress: bool,
    ) -> Task:
        """
        Adapter for UIs that tag each drag event with an in-progress flag.

        Events with in_progress=True are provisional; the first one opens a
        gesture. The event with in_progress=False commits it.
        """
        gesture = self._open_gestures.get(task_id)
        if gesture is None or gesture.closed:
            gesture = self.begin_gesture(task_id)
            self._open_gestures[task_id] = gesture

        if in_progress:
            return self.update_provisional(gesture, fields)

        self._open_gestures.pop(task_id, None)
        return await self.commit_gesture(gesture, fields)

    async def update_progress(self, task_id: str, progress: int) -> Task:
        """Progress-bar drag: a one-shot optimistic gesture."""
        gesture = self.begin_gesture(task_id)
        return await self._commit(gesture, {"progress": progress}, MSG_PROGRESS_FAILED)

    # ---- links ----

    async def add_link(
        self,
        source_id: str,
        target_id: str,
        link_type: LinkType | str = LinkType.FINISH_TO_START,
    ) -> Link:
        """Optimistically append `source_id` to the target's predecessors and persist."""
        try:
            kind = LinkType(link_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown link type: {link_type!r}") from exc

        new_deps = self.state.graph.add_link(source_id, target_id, kind)
        target = self._require_task(target_id)
        generation = self._bump(target_id)

        self.state.put_task(replace(target, dependencies=new_deps))
        self.state.phases[target_id] = MutationPhase.PENDING

        await self._persist_optimistic(
            target_id,
            generation,
            {"dependencies": new_deps},
            {"dependencies": target.dependencies},
            MSG_LINK_ADD_FAILED,
        )
        return Link(
            id=link_id(target_id, source_id, len(new_deps) - 1),
            source_id=source_id,
            target_id=target_id,
            type=kind,
        )

    async def delete_link(self, lid: str) -> Link:
        """Persist the filtered predecessor list first; drop the local edge after success."""
        link, remaining = self.state.graph.remove_link(lid)
        target_id = link.target_id
        generation = self._bump(target_id)

        self._start_saving(target_id)
        try:
            await self._store.update_task(target_id, patch_to_record({"dependencies": remaining}))
        except Exception as exc:
            logger.exception("Removing dependency failed link=%s", lid)
            raise self._fail(MSG_LINK_DELETE_FAILED, target_id) from exc
        finally:
            self._finish_saving(target_id, generation)

        current = self.state.task(target_id)
        if current is not None:
            kept = tuple(
                dep
                for dep in current.dependencies
                if dep.task_id != link.source_id and self.state.task(dep.task_id) is not None
            )
            self.state.put_task(replace(current, dependencies=kept))
            self.state.phases[target_id] = MutationPhase.COMMITTED
        logger.info("Dependency %s removed", lid)
        return link

    # ---- create / edit / delete ----

    async def create_task(self, fields: Mapping[str, Any]) -> Task:
        """Validate locally, create remotely, then add the stored task."""
        draft = draft_task(fields)
        record = task_to_record(draft)

        try:
            raw = await self._store.create_task(record)
            created = task_from_record({**record, **(raw or {})})
        except Exception as exc:
            logger.exception("create_task failed text=%r", draft.text)
            raise self._fail(MSG_CREATE_FAILED, None) from exc

        self.state.put_task(created)
        logger.info("Task created id=%s kind=%s", created.id, created.kind.value)
        return created

    async def create_milestone(
        self,
        project_id: str | None,
        text: str,
        on: datetime | str,
        notes: str = "",
    ) -> Task:
        return await self.create_task(
            {
                "text": text,
                "kind": TaskKind.MILESTONE,
                "start": on,
                "end": on,
                "duration": 0,
                "progress": 0,
                "project_id": project_id,
                "notes": notes,
            }
        )

    async def edit_task(self, task_id: str, fields: Mapping[str, Any]) -> Task:
        """Edit-form save: persist first, then adopt the stored record."""
        current = self._require_task(task_id)
        updated = apply_patch(current, fields)
        changes = diff_fields(current, updated)
        if not changes:
            return current

        generation = self._bump(task_id)
        self._start_saving(task_id)
        try:
            raw = await self._store.update_task(task_id, patch_to_record(changes))
        except Exception as exc:
            logger.exception("edit_task failed task_id=%s", task_id)
            raise self._fail(MSG_SAVE_FAILED, task_id) from exc
        finally:
            self._finish_saving(task_id, generation)

        stored = updated
        if raw:
            try:
                stored = task_from_record({**task_to_record(updated), **raw})
            except ValidationError:
                logger.warning("Store returned an unusable record for %s; keeping local edit", task_id)

        if self._is_current(task_id, generation) and self.state.task(task_id) is not None:
            self.state.put_task(stored)
            self.state.phases[task_id] = MutationPhase.COMMITTED
        return stored

    async def delete_task(self, task_id: str) -> None:
        """
        Delete remotely, then drop the task locally. Links touching it vanish
        with it: the graph never resolves edges to unknown tasks.
        """
        self._require_task(task_id)
        generation = self._bump(task_id)

        self._start_saving(task_id)
        try:
            await self._store.delete_task(task_id)
        except Exception as exc:
            logger.exception("delete_task failed task_id=%s", task_id)
            self.state.last_error = MSG_DELETE_FAILED
            raise DeletionError(MSG_DELETE_FAILED, task_id=task_id) from exc
        finally:
            self._finish_saving(task_id, generation)

        self._open_gestures.pop(task_id, None)
        self.state.drop_task(task_id)
        logger.info("Task deleted id=%s", task_id)

    async def reorder(self, task_ids: Sequence[str]) -> None:
        """Optimistically set `order` to each task's position and persist in one batch."""
        tasks = [self._require_task(tid) for tid in task_ids]
        previous = {t.id: t.order for t in tasks}
        generations = {t.id: self._bump(t.id) for t in tasks}

        for index, task in enumerate(tasks):
            self.state.put_task(replace(task, order=index))
            self.state.phases[task.id] = MutationPhase.PENDING

        patches = [{"taskId": t.id, "order": index} for index, t in enumerate(tasks)]
        try:
            await self._store.batch_update_tasks(patches)
        except Exception as exc:
            logger.exception("batch_update_tasks failed count=%d", len(patches))
            for tid, order in previous.items():
                current = self.state.task(tid)
                if current is not None and self._is_current(tid, generations[tid]):
                    self.state.put_task(replace(current, order=order))
                    self.state.phases[tid] = MutationPhase.ROLLED_BACK
            raise self._fail(MSG_ORDER_FAILED, None) from exc

        for tid, generation in generations.items():
            if self._is_current(tid, generation):
                self.state.phases[tid] = MutationPhase.COMMITTED
