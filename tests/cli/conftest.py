"""Fixtures for CLI interface tests."""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from grove.cli import cli
from grove.config import EXPORT_ENV_VAR


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.delenv(EXPORT_ENV_VAR, raising=False)
    yield
    logger = logging.getLogger("grove")
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)


@pytest.fixture
def cli_in_project(tmp_path: Path, cli_runner: CliRunner, export_file: Path) -> Generator[tuple[CliRunner, Path], None, None]:
    """Initialize a grove project in a fresh directory holding the sample export.

    Returns (runner, project_root).
    """
    project = tmp_path / "project"
    project.mkdir()
    shutil.copy(export_file, project / "issues.jsonl")
    original_cwd = os.getcwd()
    os.chdir(str(project))
    result = cli_runner.invoke(cli, ["init"])
    assert result.exit_code == 0
    yield cli_runner, project
    os.chdir(original_cwd)


@pytest.fixture
def cli_outside_project(tmp_path: Path, cli_runner: CliRunner) -> Generator[CliRunner, None, None]:
    """Run from a directory with no .grove/ above it."""
    bare = tmp_path / "bare"
    bare.mkdir()
    original_cwd = os.getcwd()
    os.chdir(str(bare))
    yield cli_runner
    os.chdir(original_cwd)
