"""Foundational TypedDicts for config files and issue wire records."""

from __future__ import annotations

from typing import Literal, TypedDict

OutputFormat = Literal["text", "json"]


class ProjectConfig(TypedDict, total=False):
    """Shape of .grove/config.json."""

    version: int
    export_path: str
    output_format: OutputFormat
    respect_expanded: bool


class DependencyDict(TypedDict):
    id: str
    dependency_type: str


class CommentDict(TypedDict):
    id: int
    issue_id: str
    author: str
    text: str
    created_at: str


class IssueDict(TypedDict):
    id: str
    title: str
    status: str
    issue_type: str
    priority: int
    description: str
    design: str
    acceptance_criteria: str
    notes: str
    created_at: str
    updated_at: str
    closed_at: str
    external_ref: str
    labels: list[str]
    comments: list[CommentDict]
    dependencies: list[DependencyDict]
    dependents: list[DependencyDict]


