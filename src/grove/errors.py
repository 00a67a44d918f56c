"""Structured errors for grove.

Every error raised by grove carries a machine-readable code so the CLI and
the dashboard can report failures consistently. Only one failure is fatal
to graph construction: a cycle in the parent-child hierarchy.
"""

from __future__ import annotations

from typing import Literal

ErrorCode = Literal[
    "unknown",
    "not_found",
    "parse_failed",
    "invalid_status",
    "cyclic_dependency",
    "invalid_issue_data",
    "graph_construction_failed",
    "configuration_error",
]

CODE_UNKNOWN: ErrorCode = "unknown"
CODE_NOT_FOUND: ErrorCode = "not_found"
CODE_PARSE_FAILED: ErrorCode = "parse_failed"
CODE_INVALID_STATUS: ErrorCode = "invalid_status"
CODE_CYCLIC_DEPENDENCY: ErrorCode = "cyclic_dependency"
CODE_INVALID_ISSUE_DATA: ErrorCode = "invalid_issue_data"
CODE_GRAPH_CONSTRUCTION: ErrorCode = "graph_construction_failed"
CODE_CONFIGURATION: ErrorCode = "configuration_error"


class GroveError(Exception):
    """An error with a machine-readable code plus a human message."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        super().__init__(message or code)
        self.code: ErrorCode = code
        self.message = message

    def __str__(self) -> str:
        return self.message or self.code


class CyclicDependencyError(GroveError, ValueError):
    """The parent-child hierarchy contains a cycle.

    ``path`` lists issue IDs from the re-entered node through the point of
    detection, so the first and last entries are the same ID.
    """

    def __init__(self, path: list[str]) -> None:
        self.path = list(path)
        super().__init__(CODE_CYCLIC_DEPENDENCY, f"cyclic dependency detected: {' -> '.join(self.path)}")


def code_of(exc: BaseException | None) -> ErrorCode:
    """Walk the cause/context chain and return the first structured code."""
    seen: set[int] = set()
    while exc is not None and id(exc) not in seen:
        if isinstance(exc, GroveError):
            return exc.code
        seen.add(id(exc))
        exc = exc.__cause__ or exc.__context__
    return CODE_UNKNOWN


def is_code(exc: BaseException | None, code: ErrorCode) -> bool:
    return code_of(exc) == code
