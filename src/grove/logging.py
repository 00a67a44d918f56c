"""Build-event logging for grove.

Every forest build (CLI command or API request) is recorded as one JSON
line in ``.grove/grove.log``: which command ran, which export it read, how
big the forest was and how long it took. A rejected build records the
cycle path instead of the forest size. The file rotates at 5MB, keeping 3
backups.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

from grove.errors import CODE_UNKNOWN, code_of
from grove.graph.serialize import forest_stats

if TYPE_CHECKING:
    from grove.graph import Node

LOG_FILENAME = "grove.log"
_MAX_BYTES = 5 * 1024 * 1024
_BACKUP_COUNT = 3

# Structured ``extra=`` keys, written in this order when present.
BUILD_FIELDS = ("command", "export", "issues", "roots", "rows", "cycle", "duration_ms", "error")

_lock = threading.Lock()
_handler: RotatingFileHandler | None = None


class BuildEventFormatter(logging.Formatter):
    """One JSON object per record: header fields plus any BUILD_FIELDS set on it."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, UTC).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in BUILD_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        exc = record.exc_info[1] if record.exc_info else None
        if exc is not None:
            entry["exception"] = str(exc)
            code = code_of(exc)
            if code != CODE_UNKNOWN:
                entry.setdefault("error", code)
        return json.dumps(entry, default=str)


def setup_logging(grove_dir: Path, *, verbose: bool = False) -> logging.Logger:
    """Attach the rotating build log under *grove_dir* to the ``grove`` logger.

    Re-running with the same directory keeps the existing handler; another
    directory swaps it out. *verbose* lowers the threshold to DEBUG so the
    builder's own summaries are kept too.
    """
    global _handler
    logger = logging.getLogger("grove")
    log_path = os.path.abspath(str(grove_dir / LOG_FILENAME))

    with _lock:
        current = _handler if _handler in logger.handlers else None
        if current is None or current.baseFilename != log_path:
            if current is not None:
                logger.removeHandler(current)
                current.close()
            _handler = RotatingFileHandler(log_path, maxBytes=_MAX_BYTES, backupCount=_BACKUP_COUNT)
            _handler.setFormatter(BuildEventFormatter())
            logger.addHandler(_handler)
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    return logger


def build_summary(roots: list[Node], *, started: float) -> dict[str, Any]:
    """``extra=`` fields describing a finished build."""
    stats = forest_stats(roots)
    return {
        "issues": stats["issues"],
        "roots": stats["roots"],
        "rows": stats["rows"],
        "duration_ms": round((perf_counter() - started) * 1000, 2),
    }
