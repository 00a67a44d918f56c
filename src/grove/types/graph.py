"""TypedDicts for serialized forests (graph/serialize.py, dashboard.py)."""

from __future__ import annotations

from typing import TypedDict


class NodeDict(TypedDict):
    id: str
    title: str
    status: str
    issue_type: str
    priority: int
    depth: int
    tree_depth: int
    expanded: bool
    is_blocked: bool
    has_in_progress: bool
    has_ready: bool
    sort_priority: int
    sort_timestamp: str | None
    parent_ids: list[str]
    blocked_by: list[str]
    blocks: list[str]
    related: list[str]
    discovered_from: list[str]
    duplicate_of: str | None
    superseded_by: str | None
    children: list[NodeDict]


class ForestStats(TypedDict):
    issues: int
    roots: int
    rows: int
    in_progress: int
    ready: int
    blocked: int


class ForestDict(TypedDict):
    roots: list[NodeDict]
    stats: ForestStats


class CycleErrorDict(TypedDict):
    """``details`` of a CYCLIC_DEPENDENCY API error."""

    path: list[str]
