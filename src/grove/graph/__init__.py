"""Dependency-forest construction for issue snapshots."""

from grove.graph.builder import (
    SORT_PRIORITY_CLOSED,
    SORT_PRIORITY_IN_PROGRESS,
    SORT_PRIORITY_OPEN,
    SORT_PRIORITY_READY,
    GraphBuilder,
    build,
    node_self_sort_key,
    parse_timestamp,
    sort_nodes,
)
from grove.graph.node import DISTANT_FUTURE, Node

__all__ = [
    "DISTANT_FUTURE",
    "SORT_PRIORITY_CLOSED",
    "SORT_PRIORITY_IN_PROGRESS",
    "SORT_PRIORITY_OPEN",
    "SORT_PRIORITY_READY",
    "GraphBuilder",
    "Node",
    "build",
    "node_self_sort_key",
    "parse_timestamp",
    "sort_nodes",
]
