"""Tests for GraphBuilder — indexing, linking, forest assembly, cascading state."""

from __future__ import annotations

import pytest

from grove.errors import CODE_CYCLIC_DEPENDENCY, CyclicDependencyError
from grove.graph import GraphBuilder, Node, build
from grove.graph.serialize import index_nodes
from grove.issues import Dependency, Dependent, Issue
from tests._factory import make_issue


def _by_id(roots: list[Node]) -> dict[str, Node]:
    return index_nodes(roots)


def _ids(nodes: list[Node]) -> list[str]:
    return [n.issue.id for n in nodes]


class TestBuildBasics:
    def test_empty_input_returns_no_roots(self) -> None:
        assert GraphBuilder().build([]) == []

    def test_simple_graph(self) -> None:
        issues = [
            make_issue(
                "ab-1",
                status="in_progress",
                updated_at="2024-01-01T00:00:00Z",
                children=("ab-2",),
            ),
            make_issue("ab-2", parents=("ab-1",), blocked_by=("ab-4",), created_at="2024-01-02T00:00:00Z"),
            make_issue("ab-3", created_at="2024-01-03T00:00:00Z"),
            make_issue("ab-4", created_at="2024-01-04T00:00:00Z"),
        ]
        roots = build(issues)
        assert sorted(_ids(roots)) == ["ab-1", "ab-3", "ab-4"]

        root = _by_id(roots)["ab-1"]
        assert _ids(root.children) == ["ab-2"]
        child = root.children[0]
        assert child.parent is root
        assert child.is_blocked
        assert _ids(child.blocked_by) == ["ab-4"]
        assert child.blocked_by[0].blocks == [child]
        assert child.depth == 1
        assert root.has_in_progress
        assert root.expanded
        assert not root.has_ready  # only child is blocked

    def test_every_issue_gets_exactly_one_node(self, sample_issues: list[Issue]) -> None:
        roots = build(sample_issues)
        index = _by_id(roots)
        assert set(index) == {i.id for i in sample_issues}
        # shared node is the same object under both parents
        epic, blocker = index["epic"], index["blocker"]
        shared_under_epic = next(c for c in epic.children if c.issue.id == "shared")
        shared_under_blocker = next(c for c in blocker.children if c.issue.id == "shared")
        assert shared_under_epic is shared_under_blocker

    def test_dangling_references_are_dropped(self) -> None:
        issues = [
            make_issue(
                "a",
                parents=("ghost-parent",),
                blocked_by=("ghost-blocker",),
                children=("ghost-child",),
                deps=(("related", "ghost"), ("discovered-from", "ghost"), ("duplicates", "ghost")),
            )
        ]
        roots = build(issues)
        assert _ids(roots) == ["a"]
        node = roots[0]
        assert node.parents == []
        assert node.children == []
        assert node.blocked_by == []
        assert not node.is_blocked
        assert node.related == []
        assert node.discovered_from == []
        assert node.duplicate_of is None

    def test_unknown_dependency_types_are_ignored(self) -> None:
        issues = [make_issue("a", deps=(("waits-for", "b"),)), make_issue("b")]
        roots = build(issues)
        assert sorted(_ids(roots)) == ["a", "b"]
        assert not any(n.is_blocked for n in roots)

    def test_builder_is_reusable(self, sample_issues: list[Issue]) -> None:
        builder = GraphBuilder()
        first = builder.build(sample_issues)
        second = builder.build(sample_issues)
        assert first[0] is not second[0]
        assert _ids(first) == _ids(second)


class TestMultiParent:
    def test_children_appear_under_all_parents(self) -> None:
        issues = [
            make_issue("ab-1", created_at="2024-01-01T00:00:00Z"),
            make_issue("ab-2", parents=("ab-1",), children=("ab-4",), created_at="2024-01-02T00:00:00Z"),
            make_issue("ab-3", created_at="2024-01-03T00:00:00Z"),
            make_issue("ab-4", parents=("ab-2", "ab-3"), created_at="2024-01-04T00:00:00Z"),
        ]
        index = _by_id(build(issues))
        leaf = index["ab-4"]
        assert _ids(leaf.parents) == ["ab-2", "ab-3"]
        assert leaf.parent is index["ab-2"]
        assert leaf in index["ab-2"].children
        assert leaf in index["ab-3"].children
        assert leaf.tree_depth == 2

    def test_three_parents(self) -> None:
        issues = [
            make_issue("p1"),
            make_issue("p2"),
            make_issue("p3"),
            make_issue("kid", parents=("p1", "p2", "p3")),
        ]
        roots = build(issues)
        assert sorted(_ids(roots)) == ["p1", "p2", "p3"]
        kid = _by_id(roots)["kid"]
        assert len(kid.parents) == 3
        for root in roots:
            assert root.children == [kid]

    def test_duplicate_declarations_are_deduplicated(self) -> None:
        # Declared on the child twice and on the parent's dependents twice.
        parent = Issue(
            id="parent",
            dependents=[Dependent(id="child", type="parent-child"), Dependent(id="child", type="parent-child")],
        )
        child = Issue(
            id="child",
            dependencies=[
                Dependency(target_id="parent", type="parent-child"),
                Dependency(target_id="parent", type="parent-child"),
            ],
        )
        roots = build([parent, child])
        assert _ids(roots) == ["parent"]
        assert _ids(roots[0].children) == ["child"]
        assert _ids(roots[0].children[0].parents) == ["parent"]

    def test_non_parent_child_dependents_create_no_hierarchy(self) -> None:
        blocker = Issue(id="blocker", dependents=[Dependent(id="blocked", type="blocks")])
        blocked = Issue(id="blocked", dependencies=[Dependency(target_id="blocker", type="blocks")])
        roots = build([blocker, blocked])
        assert sorted(_ids(roots)) == ["blocked", "blocker"]
        assert all(r.children == [] for r in roots)

    def test_root_iff_no_parents(self, sample_issues: list[Issue]) -> None:
        roots = build(sample_issues)
        root_ids = set(_ids(roots))
        for node in _by_id(roots).values():
            assert (node.issue.id in root_ids) == (not node.parents)

    def test_k_parents_means_k_child_slots(self, sample_issues: list[Issue]) -> None:
        index = _by_id(build(sample_issues))
        for node in index.values():
            holders = [p for p in index.values() if node in p.children]
            assert len(holders) == len(node.parents)
            for p in index.values():
                assert _ids(p.children).count(node.issue.id) <= 1


class TestTreeDepth:
    def test_depth_is_longest_ancestor_chain(self) -> None:
        issues = [
            make_issue("top"),
            make_issue("mid", parents=("top",)),
            make_issue("low", parents=("mid",)),
            # reachable from top directly and via mid
            make_issue("diamond", parents=("top", "low")),
        ]
        index = _by_id(build(issues))
        assert index["top"].tree_depth == 0
        assert index["mid"].tree_depth == 1
        assert index["low"].tree_depth == 2
        assert index["diamond"].tree_depth == 3

    def test_deep_chain_does_not_recurse(self) -> None:
        n = 5000
        issues = [make_issue("n0")] + [make_issue(f"n{i}", parents=(f"n{i - 1}",)) for i in range(1, n)]
        roots = build(issues)
        assert _ids(roots) == ["n0"]
        node = roots[0]
        while node.children:
            node = node.children[0]
        assert node.issue.id == f"n{n - 1}"
        assert node.tree_depth == n - 1
        assert node.depth == n - 1


class TestCycles:
    def test_two_node_cycle(self) -> None:
        issues = [make_issue("ab-1", parents=("ab-2",)), make_issue("ab-2", parents=("ab-1",))]
        with pytest.raises(CyclicDependencyError) as excinfo:
            build(issues)
        err = excinfo.value
        assert err.code == CODE_CYCLIC_DEPENDENCY
        assert set(err.path) == {"ab-1", "ab-2"}
        assert err.path[0] == err.path[-1]

    def test_self_parent(self) -> None:
        with pytest.raises(CyclicDependencyError) as excinfo:
            build([make_issue("solo", parents=("solo",))])
        assert excinfo.value.path == ["solo", "solo"]

    def test_path_starts_at_reentry_point(self) -> None:
        # tail -> a -> b -> c -> a : the tail is not part of the cycle
        issues = [
            make_issue("tail", parents=("a",)),
            make_issue("a", parents=("b",)),
            make_issue("b", parents=("c",)),
            make_issue("c", parents=("a",)),
        ]
        with pytest.raises(CyclicDependencyError) as excinfo:
            build(issues)
        assert excinfo.value.path == ["a", "b", "c", "a"]

    def test_cycle_via_dependents(self) -> None:
        issues = [make_issue("x", children=("y",)), make_issue("y", children=("x",))]
        with pytest.raises(CyclicDependencyError, match="cyclic dependency detected"):
            build(issues)

    def test_cycle_is_a_value_error(self) -> None:
        with pytest.raises(ValueError, match="cyclic"):
            build([make_issue("a", parents=("a",))])

    def test_blocks_cycles_are_not_hierarchy_cycles(self) -> None:
        issues = [make_issue("a", blocked_by=("b",)), make_issue("b", blocked_by=("a",))]
        roots = build(issues)
        assert all(r.is_blocked for r in roots)

    def test_diamond_is_not_a_cycle(self) -> None:
        issues = [
            make_issue("a"),
            make_issue("b", parents=("a",)),
            make_issue("c", parents=("a",)),
            make_issue("d", parents=("b", "c")),
        ]
        assert _ids(build(issues)) == ["a"]


class TestRelationships:
    def test_open_blocker_blocks(self) -> None:
        index = _by_id(build([make_issue("blocked", blocked_by=("blocker",)), make_issue("blocker")]))
        assert index["blocked"].is_blocked
        assert index["blocker"].blocks == [index["blocked"]]

    def test_closed_blocker_does_not_block(self) -> None:
        index = _by_id(build([make_issue("blocked", blocked_by=("blocker",)), make_issue("blocker", status="closed")]))
        assert not index["blocked"].is_blocked
        assert _ids(index["blocked"].blocked_by) == ["blocker"]
        assert index["blocked"].has_ready

    def test_blocks_sorted_by_created_at(self) -> None:
        issues = [
            make_issue("blocker"),
            make_issue("late", blocked_by=("blocker",), created_at="2024-03-01T00:00:00Z"),
            make_issue("early", blocked_by=("blocker",), created_at="2024-01-01T00:00:00Z"),
            make_issue("mid", blocked_by=("blocker",), created_at="2024-02-01T00:00:00Z"),
        ]
        index = _by_id(build(issues))
        assert _ids(index["blocker"].blocks) == ["early", "mid", "late"]

    def test_repeated_blocks_declaration_yields_one_edge(self) -> None:
        index = _by_id(build([make_issue("x", blocked_by=("y", "y")), make_issue("y")]))
        assert _ids(index["x"].blocked_by) == ["y"]
        assert _ids(index["y"].blocks) == ["x"]

    def test_related_is_symmetric(self) -> None:
        index = _by_id(build([make_issue("a", deps=(("related", "b"),)), make_issue("b")]))
        assert _ids(index["a"].related) == ["b"]
        assert _ids(index["b"].related) == ["a"]
        assert index["a"].parents == [] and index["b"].parents == []

    def test_relates_to_declared_both_ways_is_deduplicated(self) -> None:
        issues = [make_issue("c", deps=(("relates-to", "d"),)), make_issue("d", deps=(("relates-to", "c"),))]
        index = _by_id(build(issues))
        assert _ids(index["c"].related) == ["d"]
        assert _ids(index["d"].related) == ["c"]

    def test_discovered_from_is_one_directional(self) -> None:
        index = _by_id(build([make_issue("found", deps=(("discovered-from", "source"),)), make_issue("source")]))
        assert _ids(index["found"].discovered_from) == ["source"]
        assert index["source"].discovered_from == []
        assert index["found"].parents == []

    def test_duplicates_and_supersedes(self) -> None:
        issues = [
            make_issue("dup", status="closed", deps=(("duplicates", "canonical"),)),
            make_issue("canonical"),
            make_issue("new", deps=(("supersedes", "old"),)),
            make_issue("old", status="closed"),
        ]
        index = _by_id(build(issues))
        assert index["dup"].duplicate_of is index["canonical"]
        assert index["old"].superseded_by is index["new"]
        assert index["new"].superseded_by is None
        assert all(n.parents == [] for n in index.values())


class TestCascadingState:
    def test_in_progress_child_expands_ancestors(self) -> None:
        issues = [
            make_issue("root", children=("mid",)),
            make_issue("mid", parents=("root",)),
            make_issue("leaf", status="in_progress", parents=("mid",)),
        ]
        index = _by_id(build(issues))
        assert index["root"].has_in_progress and index["root"].expanded
        assert index["mid"].has_in_progress and index["mid"].expanded
        assert index["leaf"].has_in_progress
        assert not index["leaf"].expanded

    def test_in_progress_root_is_expanded(self) -> None:
        roots = build([make_issue("r", status="in_progress")])
        assert roots[0].expanded

    def test_idle_parent_stays_collapsed(self) -> None:
        index = _by_id(build([make_issue("p"), make_issue("c", parents=("p",))]))
        assert not index["p"].expanded
        assert index["p"].has_ready

    def test_has_ready_cascades(self) -> None:
        issues = [
            make_issue("p", status="closed"),
            make_issue("c", parents=("p",), status="closed"),
            make_issue("g", parents=("c",)),
        ]
        index = _by_id(build(issues))
        assert index["p"].has_ready
        assert index["c"].has_ready

    def test_blocked_open_issue_is_not_ready(self) -> None:
        index = _by_id(build([make_issue("a", blocked_by=("b",)), make_issue("b", status="in_progress")]))
        assert not index["a"].has_ready
        assert not index["b"].has_ready
        assert index["b"].has_in_progress

    def test_depth_relative_to_walk(self) -> None:
        issues = [make_issue("r"), make_issue("c", parents=("r",)), make_issue("g", parents=("c",))]
        index = _by_id(build(issues))
        assert [index[i].depth for i in ("r", "c", "g")] == [0, 1, 2]

    def test_status_is_normalized(self) -> None:
        index = _by_id(build([make_issue("p"), make_issue("c", parents=("p",), status=" In_Progress ")]))
        assert index["p"].has_in_progress
