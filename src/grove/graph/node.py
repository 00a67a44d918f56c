"""Graph node wrapping a single issue record."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from grove.issues import Issue

# Sentinel for missing/malformed timestamps: sorts last within a class.
DISTANT_FUTURE = datetime(9999, 1, 1, tzinfo=UTC)


@dataclass(eq=False)
class Node:
    """An issue plus its resolved relationships and computed annotations.

    Nodes are shared, never copied: a child with several parents is the same
    object in each parent's ``children`` list. Identity is the only equality.
    Everything except ``expanded`` is write-once during ``GraphBuilder.build``.
    """

    issue: Issue

    # Hierarchy. ``parent`` is parents[0], kept for single-parent consumers.
    children: list[Node] = field(default_factory=list, repr=False)
    parents: list[Node] = field(default_factory=list, repr=False)
    parent: Node | None = field(default=None, repr=False)

    # Blocker -> blocked
    blocked_by: list[Node] = field(default_factory=list, repr=False)
    blocks: list[Node] = field(default_factory=list, repr=False)

    related: list[Node] = field(default_factory=list, repr=False)
    discovered_from: list[Node] = field(default_factory=list, repr=False)
    duplicate_of: Node | None = field(default=None, repr=False)
    superseded_by: Node | None = field(default=None, repr=False)

    is_blocked: bool = False

    # Display state
    expanded: bool = False
    depth: int = 0
    tree_depth: int = 0

    # Cascading state
    has_in_progress: bool = False
    has_ready: bool = False
    sort_priority: int = 0
    sort_timestamp: datetime = DISTANT_FUTURE

    @property
    def id(self) -> str:
        return self.issue.id

    @property
    def sort_key(self) -> tuple[int, datetime, str]:
        return (self.sort_priority, self.sort_timestamp, self.issue.id)
