"""Forest -> JSON-compatible dicts.

A node with k parents is expanded under each of them, so the serialized
tree has one entry per display row rather than one per issue.
"""

from __future__ import annotations

from collections.abc import Iterator

from grove.graph.node import DISTANT_FUTURE, Node
from grove.issues import STATUS_IN_PROGRESS, STATUS_OPEN, normalize_status
from grove.types.graph import ForestDict, ForestStats, NodeDict


def _ids(nodes: list[Node]) -> list[str]:
    return [n.issue.id for n in nodes]


def node_to_dict(node: Node, *, include_children: bool = True) -> NodeDict:
    issue = node.issue
    return {
        "id": issue.id,
        "title": issue.title,
        "status": issue.status,
        "issue_type": issue.issue_type,
        "priority": issue.priority,
        "depth": node.depth,
        "tree_depth": node.tree_depth,
        "expanded": node.expanded,
        "is_blocked": node.is_blocked,
        "has_in_progress": node.has_in_progress,
        "has_ready": node.has_ready,
        "sort_priority": node.sort_priority,
        "sort_timestamp": None if node.sort_timestamp == DISTANT_FUTURE else node.sort_timestamp.isoformat(),
        "parent_ids": _ids(node.parents),
        "blocked_by": _ids(node.blocked_by),
        "blocks": _ids(node.blocks),
        "related": _ids(node.related),
        "discovered_from": _ids(node.discovered_from),
        "duplicate_of": node.duplicate_of.issue.id if node.duplicate_of else None,
        "superseded_by": node.superseded_by.issue.id if node.superseded_by else None,
        "children": [node_to_dict(c) for c in node.children] if include_children else [],
    }


def iter_rows(roots: list[Node], *, respect_expanded: bool = False) -> Iterator[tuple[Node, int]]:
    """Yield ``(node, level)`` in display order, one row per parent path.

    With *respect_expanded*, children of collapsed nodes are skipped.
    """
    stack: list[tuple[Node, int]] = [(root, 0) for root in reversed(roots)]
    while stack:
        node, level = stack.pop()
        yield node, level
        if respect_expanded and not node.expanded:
            continue
        stack.extend((child, level + 1) for child in reversed(node.children))


def index_nodes(roots: list[Node]) -> dict[str, Node]:
    """Map every reachable issue ID to its (shared) node."""
    index: dict[str, Node] = {}
    for node, _level in iter_rows(roots):
        index.setdefault(node.issue.id, node)
    return index


def forest_stats(roots: list[Node]) -> ForestStats:
    rows = 0
    seen: dict[str, Node] = {}
    for node, _level in iter_rows(roots):
        rows += 1
        seen.setdefault(node.issue.id, node)

    in_progress = ready = blocked = 0
    for node in seen.values():
        status = normalize_status(node.issue.status)
        if status == STATUS_IN_PROGRESS:
            in_progress += 1
        elif status == STATUS_OPEN and not node.is_blocked:
            ready += 1
        if node.is_blocked:
            blocked += 1
    return {
        "issues": len(seen),
        "roots": len(roots),
        "rows": rows,
        "in_progress": in_progress,
        "ready": ready,
        "blocked": blocked,
    }


def forest_to_dict(roots: list[Node]) -> ForestDict:
    return {"roots": [node_to_dict(r) for r in roots], "stats": forest_stats(roots)}
