"""Read-only HTTP API serving the issue forest.

The forest is rebuilt from the export file on every request; nothing is
cached between requests, so edits to the export show up on the next call.

A module-level ``_export_path`` is set at startup by ``main()`` (or by test
fixtures) and read by every handler.

Usage:
    grove serve                    # localhost:8378
    grove serve --port 9000        # Custom port
"""

from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

from grove.errors import CyclicDependencyError, GroveError
from grove.export import load_issues
from grove.graph import GraphBuilder, Node
from grove.graph.serialize import forest_to_dict, index_nodes, node_to_dict
from grove.logging import build_summary
from grove.types.graph import CycleErrorDict

if TYPE_CHECKING:
    from fastapi.responses import JSONResponse

DEFAULT_PORT = 8378

logger = logging.getLogger(__name__)

_export_path: Path | None = None

_STATUS_BY_CODE = {
    "not_found": 404,
    "parse_failed": 400,
    "invalid_issue_data": 400,
    "cyclic_dependency": 422,
    "configuration_error": 500,
}


def _error_response(
    message: str,
    code: str,
    status_code: int,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Return a structured error response and log the error."""
    from fastapi.responses import JSONResponse

    logger.warning("API error [%s] %s: %s", status_code, code, message)
    return JSONResponse(
        {"error": {"message": message, "code": code, "details": details or {}}},
        status_code=status_code,
    )


def _build_forest() -> list[Node] | JSONResponse:
    """Load the export and build, or return the error response to send."""
    if _export_path is None:
        return _error_response("Export path not configured", "CONFIGURATION_ERROR", 500)
    started = perf_counter()
    try:
        roots = GraphBuilder().build(load_issues(_export_path))
    except CyclicDependencyError as exc:
        details: CycleErrorDict = {"path": exc.path}
        return _error_response(str(exc), "CYCLIC_DEPENDENCY", 422, dict(details))
    except GroveError as exc:
        status_code = _STATUS_BY_CODE.get(exc.code, 500)
        return _error_response(str(exc), exc.code.upper(), status_code)
    logger.info("built", extra={"command": "api", "export": str(_export_path), **build_summary(roots, started=started)})
    return roots


def create_app() -> Any:
    """Create the FastAPI application with all forest endpoints."""
    from fastapi import FastAPI
    from fastapi.responses import JSONResponse

    # Expose JSONResponse in module globals so PEP 563 deferred annotations resolve
    globals()["JSONResponse"] = JSONResponse

    app = FastAPI(title="Grove", docs_url=None, redoc_url=None)

    # Each handler reads the export and rebuilds the forest inline.

    @app.get("/api/health")
    async def api_health() -> JSONResponse:
        return JSONResponse({"status": "ok", "export": str(_export_path) if _export_path else None})

    @app.get("/api/forest")
    async def api_forest() -> JSONResponse:
        roots = _build_forest()
        if isinstance(roots, JSONResponse):
            return roots
        return JSONResponse(forest_to_dict(roots))

    @app.get("/api/roots")
    async def api_roots() -> JSONResponse:
        roots = _build_forest()
        if isinstance(roots, JSONResponse):
            return roots
        return JSONResponse([r.issue.id for r in roots])

    @app.get("/api/issue/{issue_id}")
    async def api_issue(issue_id: str) -> JSONResponse:
        roots = _build_forest()
        if isinstance(roots, JSONResponse):
            return roots
        node = index_nodes(roots).get(issue_id)
        if node is None:
            return _error_response(f"Issue not found: {issue_id}", "NOT_FOUND", 404, {"id": issue_id})
        data = node_to_dict(node, include_children=False)
        return JSONResponse({**data, "children": [c.issue.id for c in node.children]})

    return app


def main(export_path: Path, port: int = DEFAULT_PORT) -> None:
    """Start the API server for *export_path*."""
    import uvicorn

    global _export_path
    _export_path = export_path

    app = create_app()
    print(f"Grove API: http://localhost:{port}/api/forest")
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="warning")
