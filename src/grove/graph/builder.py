"""GraphBuilder — turns a flat issue snapshot into a sorted, annotated forest.

Fixed pipeline, run once per ``build()`` call with no feedback between
stages:

    index -> link -> dedup parents -> cycle check -> tree depth
    -> assemble forest -> sort blocks -> per root: state, sort metrics
    -> sort roots

The parent-child hierarchy is a DAG, not a tree: a node with several
parents is appended to each parent's ``children`` (the same object, never
a copy). All traversals use explicit stacks so deep chains do not hit the
interpreter recursion limit.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator
from datetime import datetime
from time import perf_counter

from grove.errors import CyclicDependencyError
from grove.graph.node import DISTANT_FUTURE, Node
from grove.issues import (
    DEP_BLOCKS,
    DEP_DISCOVERED_FROM,
    DEP_DUPLICATES,
    DEP_PARENT_CHILD,
    DEP_SUPERSEDES,
    KNOWN_DEPENDENCY_TYPES,
    RELATED_TYPES,
    STATUS_CLOSED,
    STATUS_IN_PROGRESS,
    STATUS_OPEN,
    Issue,
    normalize_status,
)

logger = logging.getLogger(__name__)

# Priority classes, most urgent first.
SORT_PRIORITY_IN_PROGRESS = 1
SORT_PRIORITY_READY = 2
SORT_PRIORITY_OPEN = 3
SORT_PRIORITY_CLOSED = 4

_RFC3339_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})T(\d{2}:\d{2}:\d{2})(?:\.(\d+))?(Z|[+-]\d{2}:\d{2})$")


class GraphBuilder:
    """Builds rooted dependency forests from issue records.

    Stateless: every call to :meth:`build` allocates a fresh node graph, so
    one builder can be reused, and a build may run off the UI thread as long
    as nobody is reading the graph it returns while it runs.
    """

    def build(self, issues: Iterable[Issue]) -> list[Node]:
        """Return the sorted root nodes for *issues*.

        Raises ``CyclicDependencyError`` if the parent-child hierarchy has a
        cycle; no partial forest is produced in that case. Dangling
        references, duplicate declarations and unparseable timestamps are
        tolerated silently.
        """
        started = perf_counter()
        nodes = _index(issues)
        if not nodes:
            return []

        _link(nodes)
        _dedup_parents(nodes)
        try:
            _ensure_acyclic(nodes)
        except CyclicDependencyError as exc:
            logger.warning("Refusing to build forest: %s", exc, extra={"cycle": exc.path, "error": exc.code})
            raise

        depths: dict[str, int] = {}
        for node in nodes.values():
            node.tree_depth = _calculate_depth(node, depths)

        roots = _assemble(nodes)

        for node in nodes.values():
            node.blocks.sort(key=lambda blocked: blocked.issue.created_at)

        for root in roots:
            _propagate_state(root)
            if root.has_in_progress:
                root.expanded = True
            _propagate_sort_metrics(root)
        sort_nodes(roots)

        elapsed_ms = round((perf_counter() - started) * 1000, 2)
        logger.debug(
            "Built forest: %d issues, %d roots in %.1fms",
            len(nodes),
            len(roots),
            elapsed_ms,
            extra={"issues": len(nodes), "roots": len(roots), "duration_ms": elapsed_ms},
        )
        return roots


def build(issues: Iterable[Issue]) -> list[Node]:
    """Shorthand for ``GraphBuilder().build(issues)``."""
    return GraphBuilder().build(issues)


# ---------------------------------------------------------------------------
# Indexing and linking
# ---------------------------------------------------------------------------


def _index(issues: Iterable[Issue]) -> dict[str, Node]:
    nodes: dict[str, Node] = {}
    for issue in issues:
        if issue.id in nodes:
            logger.debug("Duplicate issue id %s in snapshot; keeping the later record", issue.id)
        nodes[issue.id] = Node(issue=issue)
    return nodes


def _append_unique(edges: list[Node], target: Node) -> None:
    target_id = target.issue.id
    if all(existing.issue.id != target_id for existing in edges):
        edges.append(target)


def _link(nodes: dict[str, Node]) -> None:
    """Resolve typed references into node pointers.

    ``parent-child`` may be declared on the child (dependency) and on the
    parent (dependent); both land in ``child.parents`` and are deduplicated
    afterwards by ``_dedup_parents``.
    """
    dropped = 0
    for node in nodes.values():
        for dep in node.issue.dependencies:
            target = nodes.get(dep.target_id)
            if target is None:
                if dep.type in KNOWN_DEPENDENCY_TYPES:
                    dropped += 1
                continue

            if dep.type == DEP_PARENT_CHILD:
                node.parents.append(target)
            elif dep.type == DEP_BLOCKS:
                _append_unique(node.blocked_by, target)
                if normalize_status(target.issue.status) != STATUS_CLOSED:
                    node.is_blocked = True
                _append_unique(target.blocks, node)
            elif dep.type in RELATED_TYPES:
                _append_unique(node.related, target)
                _append_unique(target.related, node)
            elif dep.type == DEP_DISCOVERED_FROM:
                _append_unique(node.discovered_from, target)
            elif dep.type == DEP_DUPLICATES:
                if node.duplicate_of is None:
                    node.duplicate_of = target
            elif dep.type == DEP_SUPERSEDES:
                if target.superseded_by is None:
                    target.superseded_by = node

        for dependent in node.issue.dependents:
            if dependent.type != DEP_PARENT_CHILD:
                continue
            child = nodes.get(dependent.id)
            if child is None:
                dropped += 1
                continue
            child.parents.append(node)

    if dropped:
        logger.debug("Dropped %d references to issues outside the snapshot", dropped)


def _dedup_parents(nodes: dict[str, Node]) -> None:
    for node in nodes.values():
        if len(node.parents) <= 1:
            continue
        seen: set[str] = set()
        unique: list[Node] = []
        for parent in node.parents:
            if parent.issue.id in seen:
                continue
            seen.add(parent.issue.id)
            unique.append(parent)
        node.parents = unique


# ---------------------------------------------------------------------------
# Validation and depth
# ---------------------------------------------------------------------------


def _ensure_acyclic(nodes: dict[str, Node]) -> None:
    """DFS over ``parents`` edges only; raise on the first back edge."""
    visited: set[str] = set()
    on_stack: set[str] = set()

    for start in nodes.values():
        if start.issue.id in visited:
            continue
        path = [start.issue.id]
        on_stack.add(start.issue.id)
        stack: list[tuple[Node, Iterator[Node]]] = [(start, iter(start.parents))]
        while stack:
            node, pending = stack[-1]
            parent = next(pending, None)
            if parent is None:
                stack.pop()
                path.pop()
                on_stack.discard(node.issue.id)
                visited.add(node.issue.id)
                continue
            parent_id = parent.issue.id
            if parent_id in on_stack:
                reentry = path.index(parent_id)
                raise CyclicDependencyError([*path[reentry:], parent_id])
            if parent_id in visited:
                continue
            on_stack.add(parent_id)
            path.append(parent_id)
            stack.append((parent, iter(parent.parents)))


def _calculate_depth(start: Node, memo: dict[str, int]) -> int:
    """Longest ancestor chain above *start* (0 for a root).

    The per-path guard only matters if this runs before ``_ensure_acyclic``;
    a parent already on the current path counts as depth 0.
    """
    if start.issue.id in memo:
        return memo[start.issue.id]

    on_path = {start.issue.id}
    # Deepest parent depth seen so far for each node on the path; -1 = none.
    deepest = {start.issue.id: -1}
    stack: list[tuple[Node, Iterator[Node]]] = [(start, iter(start.parents))]
    while stack:
        node, pending = stack[-1]
        node_id = node.issue.id
        parent = next(pending, None)
        if parent is not None:
            parent_id = parent.issue.id
            if parent_id in on_path:
                deepest[node_id] = max(deepest[node_id], 0)
            elif parent_id in memo:
                deepest[node_id] = max(deepest[node_id], memo[parent_id])
            else:
                on_path.add(parent_id)
                deepest[parent_id] = -1
                stack.append((parent, iter(parent.parents)))
            continue

        stack.pop()
        on_path.discard(node_id)
        depth = deepest.pop(node_id) + 1
        memo[node_id] = depth
        if stack:
            child_id = stack[-1][0].issue.id
            deepest[child_id] = max(deepest[child_id], depth)
    return memo[start.issue.id]


# ---------------------------------------------------------------------------
# Forest assembly
# ---------------------------------------------------------------------------


def _assemble(nodes: dict[str, Node]) -> list[Node]:
    roots: list[Node] = []
    for node in nodes.values():
        if not node.parents:
            roots.append(node)
            continue
        for parent in node.parents:
            _append_unique(parent.children, node)
        node.parent = node.parents[0]
    return roots


# ---------------------------------------------------------------------------
# Cascading state
# ---------------------------------------------------------------------------


def _mark_own_state(node: Node) -> None:
    status = normalize_status(node.issue.status)
    if status == STATUS_IN_PROGRESS:
        node.has_in_progress = True
    if status == STATUS_OPEN and not node.is_blocked:
        node.has_ready = True


def _propagate_state(root: Node) -> None:
    """Post-order walk: OR child flags into parents, auto-expand active work.

    Shared nodes are walked once per parent; ``depth`` ends up relative to
    the last parent that reached them.
    """
    _mark_own_state(root)
    stack: list[tuple[Node, Iterator[Node]]] = [(root, iter(root.children))]
    while stack:
        node, pending = stack[-1]
        child = next(pending, None)
        if child is not None:
            child.depth = node.depth + 1
            _mark_own_state(child)
            stack.append((child, iter(child.children)))
            continue

        stack.pop()
        if not stack:
            continue
        parent = stack[-1][0]
        if node.has_in_progress:
            parent.has_in_progress = True
            parent.expanded = True
        if node.has_ready:
            parent.has_ready = True


# ---------------------------------------------------------------------------
# Sort metrics
# ---------------------------------------------------------------------------


def parse_timestamp(value: str) -> datetime | None:
    """Parse an RFC3339 timestamp, or return None.

    Requires a full date, time and offset (``Z`` or ``+hh:mm``). Fractional
    seconds beyond microseconds are truncated.
    """
    match = _RFC3339_RE.match(value.strip()) if value else None
    if match is None:
        return None
    date, clock, fraction, offset = match.groups()
    if offset == "Z":
        offset = "+00:00"
    micros = (fraction or "")[:6].ljust(6, "0")
    try:
        return datetime.fromisoformat(f"{date}T{clock}.{micros}{offset}")
    except ValueError:
        return None


def pick_timestamp(*values: str) -> datetime:
    """First parseable timestamp among *values*, else ``DISTANT_FUTURE``."""
    for value in values:
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    return DISTANT_FUTURE


def node_self_sort_key(node: Node) -> tuple[int, datetime]:
    """Priority class and timestamp for *node* alone, ignoring descendants."""
    issue = node.issue
    status = normalize_status(issue.status)
    if status == STATUS_IN_PROGRESS:
        return SORT_PRIORITY_IN_PROGRESS, pick_timestamp(issue.updated_at, issue.created_at)
    if status == STATUS_CLOSED:
        return SORT_PRIORITY_CLOSED, pick_timestamp(issue.closed_at, issue.updated_at, issue.created_at)
    if status == STATUS_OPEN and not node.is_blocked:
        return SORT_PRIORITY_READY, pick_timestamp(issue.created_at)
    return SORT_PRIORITY_OPEN, pick_timestamp(issue.created_at)


def sort_nodes(nodes: list[Node]) -> None:
    """Stable in-place sort: priority, then timestamp, then issue ID."""
    nodes.sort(key=lambda n: n.sort_key)


def _propagate_sort_metrics(root: Node) -> None:
    """Bottom-up: each node takes the most urgent key among itself and its
    children, then its children are sorted."""
    stack: list[tuple[Node, Iterator[Node]]] = [(root, iter(root.children))]
    while stack:
        node, pending = stack[-1]
        child = next(pending, None)
        if child is not None:
            stack.append((child, iter(child.children)))
            continue

        stack.pop()
        best = node_self_sort_key(node)
        for child in node.children:
            candidate = (child.sort_priority, child.sort_timestamp)
            if candidate < best:
                best = candidate
        node.sort_priority, node.sort_timestamp = best
        sort_nodes(node.children)
