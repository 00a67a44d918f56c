"""Issue records as exported by an issue store.

These are plain data: grove never mutates an ``Issue`` after decoding it.
The wire shape matches the JSON emitted by beads-style ``export`` commands,
where dependencies and dependents use the keys ``id`` and
``dependency_type``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from grove.errors import CODE_INVALID_ISSUE_DATA, GroveError
from grove.types.core import CommentDict, DependencyDict, IssueDict

# ---------------------------------------------------------------------------
# Vocabulary
# ---------------------------------------------------------------------------

DEP_PARENT_CHILD = "parent-child"
DEP_BLOCKS = "blocks"
DEP_RELATED = "related"
DEP_RELATES_TO = "relates-to"
DEP_DISCOVERED_FROM = "discovered-from"
DEP_DUPLICATES = "duplicates"
DEP_SUPERSEDES = "supersedes"

RELATED_TYPES = frozenset({DEP_RELATED, DEP_RELATES_TO})
KNOWN_DEPENDENCY_TYPES = frozenset(
    {DEP_PARENT_CHILD, DEP_BLOCKS, DEP_DISCOVERED_FROM, DEP_DUPLICATES, DEP_SUPERSEDES} | RELATED_TYPES
)

STATUS_OPEN = "open"
STATUS_IN_PROGRESS = "in_progress"
STATUS_BLOCKED = "blocked"
STATUS_DEFERRED = "deferred"
STATUS_CLOSED = "closed"

KNOWN_STATUSES = frozenset({STATUS_OPEN, STATUS_IN_PROGRESS, STATUS_BLOCKED, STATUS_DEFERRED, STATUS_CLOSED})


def normalize_status(raw: str) -> str:
    """Lower-case and strip a status. Unknown values pass through untouched."""
    return raw.strip().lower()


def is_known_status(status: str) -> bool:
    return normalize_status(status) in KNOWN_STATUSES


def is_terminal_status(status: str) -> bool:
    return normalize_status(status) == STATUS_CLOSED


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


def _str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    return str(value)


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        msg = f"{key} must be a list, got {type(value).__name__}"
        raise GroveError(CODE_INVALID_ISSUE_DATA, msg)
    return value


def _dict(value: object, what: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        msg = f"{what} must be an object, got {type(value).__name__}"
        raise GroveError(CODE_INVALID_ISSUE_DATA, msg)
    return value


@dataclass(frozen=True)
class Dependency:
    """Outgoing typed reference: this issue -> ``target_id``."""

    target_id: str
    type: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependency:
        return cls(target_id=_str(data, "id"), type=_str(data, "dependency_type"))

    def to_dict(self) -> DependencyDict:
        return {"id": self.target_id, "dependency_type": self.type}


@dataclass(frozen=True)
class Dependent:
    """Incoming typed reference: ``id`` -> this issue."""

    id: str
    type: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Dependent:
        return cls(id=_str(data, "id"), type=_str(data, "dependency_type"))

    def to_dict(self) -> DependencyDict:
        return {"id": self.id, "dependency_type": self.type}


@dataclass(frozen=True)
class Comment:
    id: int
    issue_id: str
    author: str = ""
    text: str = ""
    created_at: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Comment:
        raw_id = data.get("id") or 0
        try:
            comment_id = int(raw_id)
        except (TypeError, ValueError):
            msg = f"comment id must be an integer, got {raw_id!r}"
            raise GroveError(CODE_INVALID_ISSUE_DATA, msg) from None
        return cls(
            id=comment_id,
            issue_id=_str(data, "issue_id"),
            author=_str(data, "author"),
            text=_str(data, "text"),
            created_at=_str(data, "created_at"),
        )

    def to_dict(self) -> CommentDict:
        return {
            "id": self.id,
            "issue_id": self.issue_id,
            "author": self.author,
            "text": self.text,
            "created_at": self.created_at,
        }


@dataclass
class Issue:
    id: str
    title: str = ""
    status: str = STATUS_OPEN
    issue_type: str = "task"
    priority: int = 2
    description: str = ""
    design: str = ""
    acceptance_criteria: str = ""
    notes: str = ""
    # RFC3339 strings, possibly empty or malformed
    created_at: str = ""
    updated_at: str = ""
    closed_at: str = ""
    external_ref: str = ""
    labels: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    dependencies: list[Dependency] = field(default_factory=list)
    dependents: list[Dependent] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Issue:
        """Decode one export record.

        Missing keys take defaults and ``null`` collections become empty.
        Raises ``GroveError(invalid_issue_data)`` if the record has no ID.
        """
        data = _dict(data, "issue record")
        issue_id = data.get("id")
        if not isinstance(issue_id, str) or not issue_id.strip():
            msg = f"issue record is missing a string id: {issue_id!r}"
            raise GroveError(CODE_INVALID_ISSUE_DATA, msg)

        raw_priority = data.get("priority")
        try:
            priority = 2 if raw_priority is None else int(raw_priority)
        except (TypeError, ValueError):
            msg = f"{issue_id}: priority must be an integer, got {raw_priority!r}"
            raise GroveError(CODE_INVALID_ISSUE_DATA, msg) from None

        return cls(
            id=issue_id,
            title=_str(data, "title"),
            status=_str(data, "status") or STATUS_OPEN,
            issue_type=_str(data, "issue_type") or "task",
            priority=priority,
            description=_str(data, "description"),
            design=_str(data, "design"),
            acceptance_criteria=_str(data, "acceptance_criteria"),
            notes=_str(data, "notes"),
            created_at=_str(data, "created_at"),
            updated_at=_str(data, "updated_at"),
            closed_at=_str(data, "closed_at"),
            external_ref=_str(data, "external_ref"),
            labels=[str(label) for label in _list(data, "labels")],
            comments=[Comment.from_dict(_dict(c, "comment")) for c in _list(data, "comments")],
            dependencies=[Dependency.from_dict(_dict(d, "dependency")) for d in _list(data, "dependencies")],
            dependents=[Dependent.from_dict(_dict(d, "dependent")) for d in _list(data, "dependents")],
        )

    def to_dict(self) -> IssueDict:
        return {
            "id": self.id,
            "title": self.title,
            "status": self.status,
            "issue_type": self.issue_type,
            "priority": self.priority,
            "description": self.description,
            "design": self.design,
            "acceptance_criteria": self.acceptance_criteria,
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "closed_at": self.closed_at,
            "external_ref": self.external_ref,
            "labels": list(self.labels),
            "comments": [c.to_dict() for c in self.comments],
            "dependencies": [d.to_dict() for d in self.dependencies],
            "dependents": [d.to_dict() for d in self.dependents],
        }
