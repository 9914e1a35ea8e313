# src/ganttline/timeline/dependency_graph.py

from __future__ import annotations

"""
Dependency graph.

Links are persisted on the successor task as a predecessor list. The graph is
a derived index over those lists: rebuilt from the tasks, never edited in
place. Operations that "change" the graph return the successor's new
predecessor list; persisting it is the mutation protocol's job.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from ..core.errors import InvalidLinkError
from .task_models import Dependency, LinkType, Task

logger = logging.getLogger(__name__)

LINK_TYPE_LABELS: dict[LinkType, str] = {
    LinkType.FINISH_TO_START: "Finish -> Start",
    LinkType.START_TO_START: "Start -> Start",
    LinkType.FINISH_TO_FINISH: "Finish -> Finish",
    LinkType.START_TO_FINISH: "Start -> Finish",
}


@dataclass(frozen=True, slots=True)
class Link:
    id: str
    source_id: str
    target_id: str
    type: LinkType = LinkType.FINISH_TO_START


def link_id(target_id: str, source_id: str, ordinal: int) -> str:
    """Stable across reloads as long as the predecessor list keeps its order."""
    return f"{target_id}-{source_id}-{ordinal}"


def build_links(tasks: Iterable[Task]) -> list[Link]:
    """Flatten every task's predecessor list into edges, dropping dangling ones."""
    task_list = list(tasks)
    known = {t.id for t in task_list}
    links: list[Link] = []
    seen: set[str] = set()

    for task in task_list:
        for ordinal, dep in enumerate(task.dependencies):
            if dep.task_id not in known:
                logger.debug("Dropping dangling link %s -> %s", dep.task_id, task.id)
                continue
            lid = link_id(task.id, dep.task_id, ordinal)
            if lid in seen:
                continue
            seen.add(lid)
            links.append(Link(id=lid, source_id=dep.task_id, target_id=task.id, type=dep.type))
    return links


class DependencyGraph:
    """Edge list plus per-task incoming/outgoing indexes (insertion order kept)."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        task_list = list(tasks)
        self._predecessors: dict[str, tuple[Dependency, ...]] = {
            t.id: t.dependencies for t in task_list
        }
        self._links = build_links(task_list)
        self._by_id: dict[str, Link] = {}
        self._incoming: dict[str, list[Link]] = {}
        self._outgoing: dict[str, list[Link]] = {}

        for link in self._links:
            self._by_id[link.id] = link
            self._incoming.setdefault(link.target_id, []).append(link)
            self._outgoing.setdefault(link.source_id, []).append(link)

    @classmethod
    def from_tasks(cls, tasks: Iterable[Task]) -> DependencyGraph:
        return cls(tasks)

    @property
    def links(self) -> list[Link]:
        return list(self._links)

    def __len__(self) -> int:
        return len(self._links)

    def __contains__(self, lid: object) -> bool:
        return lid in self._by_id

    def get(self, lid: str) -> Link | None:
        return self._by_id.get(lid)

    def incoming(self, task_id: str) -> list[Link]:
        return list(self._incoming.get(task_id, ()))

    def outgoing(self, task_id: str) -> list[Link]:
        return list(self._outgoing.get(task_id, ()))

    def _live_predecessors(self, task_id: str) -> tuple[Dependency, ...]:
        """Predecessor list without entries for deleted tasks (they are dropped on the next write)."""
        return tuple(dep for dep in self._predecessors.get(task_id, ()) if dep.task_id in self._predecessors)

    def has_edge(self, source_id: str, target_id: str) -> bool:
        return any(link.source_id == source_id for link in self._incoming.get(target_id, ()))

    def add_link(
        self,
        source_id: str,
        target_id: str,
        link_type: LinkType = LinkType.FINISH_TO_START,
    ) -> tuple[Dependency, ...]:
        """
        Validate a new edge and return the target's extended predecessor list.

        Only self-loops and exact duplicates are rejected; longer cycles are not
        detected.
        """
        if source_id == target_id:
            raise InvalidLinkError(f"A task cannot depend on itself ({source_id})")
        for endpoint in (source_id, target_id):
            if endpoint not in self._predecessors:
                raise InvalidLinkError(f"Unknown task: {endpoint}")
        if self.has_edge(source_id, target_id):
            raise InvalidLinkError(f"Dependency {source_id} -> {target_id} already exists")

        return (*self._live_predecessors(target_id), Dependency(source_id, LinkType(link_type)))

    def remove_link(self, lid: str) -> tuple[Link, tuple[Dependency, ...]]:
        """Return the edge and its target's predecessor list without that predecessor."""
        link = self.get(lid)
        if link is None:
            raise InvalidLinkError(f"Unknown link: {lid}")

        remaining = tuple(
            dep for dep in self._live_predecessors(link.target_id) if dep.task_id != link.source_id
        )
        return link, remaining
