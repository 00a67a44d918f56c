"""Decode issue-store export payloads into ``Issue`` records.

Accepts what export commands actually emit: a JSON array of issue objects,
a single object, or JSON-lines with one object per line.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from grove.errors import CODE_NOT_FOUND, CODE_PARSE_FAILED, GroveError
from grove.issues import Issue

logger = logging.getLogger(__name__)


def _decode_records(text: str) -> list[Any]:
    stripped = text.strip()
    if not stripped:
        return []
    try:
        payload = json.loads(stripped)
    except json.JSONDecodeError:
        payload = None
    else:
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            return [payload]
        msg = f"export must be a JSON array or object, got {type(payload).__name__}"
        raise GroveError(CODE_PARSE_FAILED, msg)

    records: list[Any] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        try:
            records.append(json.loads(line))
        except json.JSONDecodeError as exc:
            msg = f"line {lineno}: invalid JSON: {exc.msg}"
            raise GroveError(CODE_PARSE_FAILED, msg) from exc
    return records


def parse_issues(text: str) -> list[Issue]:
    """Parse an export payload. Raises ``GroveError`` on malformed input."""
    return [Issue.from_dict(record) for record in _decode_records(text)]


def load_issues(path: str | Path) -> list[Issue]:
    """Read and parse an export file."""
    export_path = Path(path)
    try:
        text = export_path.read_text(encoding="utf-8-sig")
    except FileNotFoundError:
        raise GroveError(CODE_NOT_FOUND, f"export file not found: {export_path}") from None
    except UnicodeDecodeError as exc:
        raise GroveError(CODE_PARSE_FAILED, f"{export_path} is not valid UTF-8: {exc}") from exc
    except OSError as exc:
        raise GroveError(CODE_PARSE_FAILED, f"cannot read {export_path}: {exc}") from exc
    issues = parse_issues(text)
    logger.debug("Loaded %d issues from %s", len(issues), export_path)
    return issues
