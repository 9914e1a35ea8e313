# tests/test_dependency_graph.py

from __future__ import annotations

import pytest

from ganttline.core.errors import InvalidLinkError
from ganttline.timeline.dependency_graph import DependencyGraph, build_links
from ganttline.timeline.task_models import Dependency, LinkType, load

from .conftest import make_record


def test_links_are_derived_from_predecessor_lists(timeline) -> None:
    ids = [link.id for link in timeline.links]
    assert ids == ["B-A-0", "M-B-0", "M-C-1"]

    m_c = timeline.graph.get("M-C-1")
    assert m_c is not None
    assert (m_c.source_id, m_c.target_id, m_c.type) == ("C", "M", LinkType.FINISH_TO_FINISH)


def test_incoming_and_outgoing_indexes(timeline) -> None:
    graph = timeline.graph
    assert [link.source_id for link in graph.incoming("M")] == ["B", "C"]
    assert [link.target_id for link in graph.outgoing("B")] == ["M"]
    assert graph.incoming("A") == []
    assert graph.has_edge("A", "B")
    assert not graph.has_edge("B", "A")


def test_dangling_predecessors_are_dropped() -> None:
    tasks = load(
        [
            make_record("A", "a", "2024-01-01", "2024-01-02"),
            make_record("B", "b", "2024-01-02", "2024-01-03", dependencies=["gone", "A"]),
        ]
    )
    links = build_links(tasks)
    assert [(link.id, link.source_id) for link in links] == [("B-A-1", "A")]


def test_add_link_returns_extended_predecessor_list(timeline) -> None:
    deps = timeline.graph.add_link("A", "C", LinkType.START_TO_START)
    assert deps == (Dependency("A", LinkType.START_TO_START),)

    deps = timeline.graph.add_link("A", "M")
    assert deps[-1] == Dependency("A", LinkType.FINISH_TO_START)
    assert len(deps) == 3


@pytest.mark.parametrize(
    "source,target",
    [
        ("A", "A"),  # self-loop
        ("A", "B"),  # duplicate
        ("A", "missing"),
        ("missing", "A"),
    ],
)
def test_add_link_rejects_invalid_edges(timeline, source, target) -> None:
    with pytest.raises(InvalidLinkError):
        timeline.graph.add_link(source, target)


def test_add_link_allows_longer_cycles(timeline) -> None:
    # Only direct self-loops are rejected.
    deps = timeline.graph.add_link("M", "A")
    assert deps == (Dependency("M"),)


def test_remove_link_filters_the_predecessor(timeline) -> None:
    link, remaining = timeline.graph.remove_link("M-B-0")
    assert link.source_id == "B"
    assert remaining == (Dependency("C", LinkType.FINISH_TO_FINISH),)

    with pytest.raises(InvalidLinkError):
        timeline.graph.remove_link("nope")


def test_empty_graph() -> None:
    graph = DependencyGraph()
    assert len(graph) == 0
    assert graph.links == []
    assert "B-A-0" not in graph


def test_written_predecessor_lists_skip_deleted_tasks() -> None:
    tasks = load(
        [
            make_record("A", "a", "2024-01-01", "2024-01-02"),
            make_record("C", "c", "2024-01-01", "2024-01-02"),
            make_record("B", "b", "2024-01-02", "2024-01-03", dependencies=["gone", "A"]),
        ]
    )
    graph = DependencyGraph(tasks)

    assert graph.add_link("C", "B") == (Dependency("A"), Dependency("C"))

    link, remaining = graph.remove_link("B-A-1")
    assert graph.get("B-A-1") == link
    assert remaining == ()
