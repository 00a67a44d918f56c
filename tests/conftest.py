"""Shared pytest fixtures for grove tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from grove.issues import Issue
from tests._factory import make_issue


@pytest.fixture
def cli_runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def sample_issues() -> list[Issue]:
    """A representative snapshot.

    - epic (open) with children task-a (in_progress) and task-b (open, blocked by blocker)
    - blocker (open root), shared (open) under both epic and blocker
    - done (closed root), note (discovered from task-a)
    """
    return [
        make_issue("epic", created_at="2024-01-01T00:00:00Z", children=("task-a",)),
        make_issue("task-a", status="in_progress", parents=("epic",), updated_at="2024-01-05T00:00:00Z"),
        make_issue("task-b", parents=("epic",), blocked_by=("blocker",), created_at="2024-01-03T00:00:00Z"),
        make_issue("blocker", created_at="2024-01-02T00:00:00Z"),
        make_issue("shared", parents=("epic", "blocker"), created_at="2024-01-04T00:00:00Z"),
        make_issue("done", status="closed", closed_at="2024-01-06T00:00:00Z"),
        make_issue("note", deps=(("discovered-from", "task-a"),), created_at="2024-02-01T00:00:00Z"),
    ]


@pytest.fixture
def export_file(tmp_path: Path, sample_issues: list[Issue]) -> Path:
    """sample_issues written as JSON-lines."""
    path = tmp_path / "issues.jsonl"
    path.write_text("\n".join(json.dumps(i.to_dict()) for i in sample_issues) + "\n")
    return path


@pytest.fixture
def cyclic_export(tmp_path: Path) -> Path:
    path = tmp_path / "cyclic.json"
    issues = [make_issue("a", parents=("b",)), make_issue("b", parents=("a",))]
    path.write_text(json.dumps([i.to_dict() for i in issues]))
    return path
