"""Project discovery and configuration.

Convention-based: each project has a ``.grove/`` directory holding
``config.json``. Precedence for the export location is
CLI argument > ``GROVE_EXPORT`` > config.json > default.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from grove.errors import CODE_CONFIGURATION, GroveError
from grove.types.core import ProjectConfig

logger = logging.getLogger(__name__)

GROVE_DIR_NAME = ".grove"
CONFIG_FILENAME = "config.json"
DEFAULT_EXPORT_PATH = "issues.jsonl"
EXPORT_ENV_VAR = "GROVE_EXPORT"

VALID_OUTPUT_FORMATS: frozenset[str] = frozenset({"text", "json"})


def default_config() -> ProjectConfig:
    return ProjectConfig(version=1, export_path=DEFAULT_EXPORT_PATH, output_format="text", respect_expanded=False)


def find_grove_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .grove/ directory.

    Returns the .grove/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / GROVE_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {GROVE_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(grove_dir: Path) -> ProjectConfig:
    """Read .grove/config.json merged over defaults. Corrupt files yield defaults."""
    config = default_config()
    config_path = grove_dir / CONFIG_FILENAME
    if not config_path.exists():
        return config
    try:
        loaded = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return config
    if not isinstance(loaded, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return config

    config.update(loaded)  # type: ignore[typeddict-item]
    if config.get("output_format") not in VALID_OUTPUT_FORMATS:
        logger.warning("Unknown output_format %r in config, falling back to 'text'", config.get("output_format"))
        config["output_format"] = "text"
    return config


def write_config(grove_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .grove/config.json."""
    config_path = grove_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


def resolve_export_path(explicit: str | Path | None = None, *, start: Path | None = None) -> Path:
    """Decide which export file to read.

    Relative config paths are resolved against the project root (the parent
    of ``.grove/``). Raises ``GroveError(configuration_error)`` when nothing
    points at an export.
    """
    if explicit:
        return Path(explicit)
    from_env = os.environ.get(EXPORT_ENV_VAR, "").strip()
    if from_env:
        return Path(from_env)
    try:
        grove_dir = find_grove_root(start)
    except FileNotFoundError:
        msg = f"No export file given and no {GROVE_DIR_NAME}/ found. Pass a path, set {EXPORT_ENV_VAR}, or run 'grove init'."
        raise GroveError(CODE_CONFIGURATION, msg) from None
    configured = Path(read_config(grove_dir).get("export_path") or DEFAULT_EXPORT_PATH)
    if configured.is_absolute():
        return configured
    return grove_dir.parent / configured
