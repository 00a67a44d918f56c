"""CLI for grove.

Convention-based: discovers .grove/ by walking up from cwd to find the
configured export file when no path is given.

Usage:
    grove init --export issues.jsonl       # Initialize .grove/ in cwd
    grove tree                             # Print the sorted forest
    grove tree --collapsed                 # Only descend into expanded nodes
    grove tree export.json --json          # Forest as JSON
    grove check                            # Validate the hierarchy (exit 1 on cycle)
    grove show <id>                        # One issue with its relationships
    grove serve --port 8378                # Read-only dashboard API
"""

from __future__ import annotations

import json as json_mod
import logging
import sys
from pathlib import Path
from time import perf_counter
from typing import NoReturn

import click

from grove import __version__
from grove.config import (
    CONFIG_FILENAME,
    DEFAULT_EXPORT_PATH,
    GROVE_DIR_NAME,
    find_grove_root,
    read_config,
    resolve_export_path,
    write_config,
)
from grove.errors import CyclicDependencyError, GroveError
from grove.export import load_issues
from grove.graph import GraphBuilder, Node
from grove.graph.serialize import forest_stats, forest_to_dict, index_nodes, iter_rows, node_to_dict
from grove.issues import STATUS_CLOSED, STATUS_IN_PROGRESS, STATUS_OPEN, normalize_status
from grove.logging import build_summary, setup_logging

logger = logging.getLogger(__name__)


def _grove_dir() -> Path | None:
    try:
        return find_grove_root()
    except FileNotFoundError:
        return None


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _setup_logging() -> None:
    grove_dir = _grove_dir()
    if grove_dir is not None:
        ctx = click.get_current_context(silent=True)
        verbose = bool(ctx is not None and ctx.obj and ctx.obj.get("verbose"))
        setup_logging(grove_dir, verbose=verbose)


def _build_forest(export: str | None, command: str) -> list[Node]:
    """Resolve, load and build. Exits with status 1 on any grove error."""
    _setup_logging()

    started = perf_counter()
    try:
        path = resolve_export_path(export)
    except GroveError as e:
        logger.warning("failed", extra={"command": command, "error": e.code})
        _fail(str(e))
    fields = {"command": command, "export": str(path)}
    try:
        roots = GraphBuilder().build(load_issues(path))
    except CyclicDependencyError as e:
        logger.warning("cycle", extra={**fields, "cycle": e.path, "error": e.code})
        click.echo(f"Error: {e}", err=True)
        click.echo("Cycle: " + " -> ".join(e.path), err=True)
        sys.exit(1)
    except GroveError as e:
        logger.warning("failed", extra={**fields, "error": e.code})
        _fail(str(e))

    logger.info("built", extra={**fields, **build_summary(roots, started=started)})
    return roots


def _marker(node: Node) -> str:
    status = normalize_status(node.issue.status)
    if status == STATUS_IN_PROGRESS:
        return ">"
    if status == STATUS_CLOSED:
        return "x"
    if node.is_blocked:
        return "!"
    if status == STATUS_OPEN:
        return "o"
    return "-"


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="grove")
@click.option("--verbose", "-v", is_flag=True, help="Also log build internals to .grove/grove.log")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Grove — sorted issue forests from issue-store exports."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.option("--export", "export_path", default=DEFAULT_EXPORT_PATH, help="Export file, relative to the project root")
@click.option("--json-output", is_flag=True, help="Default to JSON output")
def init(export_path: str, json_output: bool) -> None:
    """Initialize .grove/ in the current directory."""
    cwd = Path.cwd()
    grove_dir = cwd / GROVE_DIR_NAME
    if grove_dir.exists():
        click.echo(f"{GROVE_DIR_NAME}/ already exists in {cwd}")
        return

    grove_dir.mkdir()
    write_config(
        grove_dir,
        {
            "version": 1,
            "export_path": export_path,
            "output_format": "json" if json_output else "text",
            "respect_expanded": False,
        },
    )
    _setup_logging()
    logger.info("init", extra={"command": "init", "export": export_path})
    click.echo(f"Initialized {GROVE_DIR_NAME}/ in {cwd}")
    click.echo(f"  Config: {grove_dir / CONFIG_FILENAME}")
    click.echo(f"  Export: {export_path}")


@cli.command()
@click.argument("export", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--collapsed", is_flag=True, help="Hide children of collapsed nodes")
def tree(export: str | None, as_json: bool, collapsed: bool) -> None:
    """Print the sorted forest.

    Project config can default to JSON output (output_format) or to the
    collapsed view (respect_expanded).
    """
    grove_dir = _grove_dir()
    if grove_dir is not None:
        config = read_config(grove_dir)
        as_json = as_json or config.get("output_format") == "json"
        collapsed = collapsed or bool(config.get("respect_expanded"))

    roots = _build_forest(export, "tree")

    if as_json:
        click.echo(json_mod.dumps(forest_to_dict(roots), indent=2))
        return

    rows = 0
    for node, level in iter_rows(roots, respect_expanded=collapsed):
        rows += 1
        issue = node.issue
        click.echo(f'{"  " * level}{_marker(node)} {issue.id} [{issue.status}] {issue.title}')
    stats = forest_stats(roots)
    click.echo(f"\n{rows} rows, {stats['issues']} issues, {stats['roots']} roots")


@cli.command()
@click.argument("export", required=False)
def check(export: str | None) -> None:
    """Validate the parent-child hierarchy."""
    roots = _build_forest(export, "check")
    stats = forest_stats(roots)
    click.echo(f"OK: {stats['issues']} issues, {stats['roots']} roots")


@cli.command()
@click.argument("issue_id")
@click.argument("export", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(issue_id: str, export: str | None, as_json: bool) -> None:
    """Show one issue with its relationships and computed state."""
    roots = _build_forest(export, "show")
    node = index_nodes(roots).get(issue_id)
    if node is None:
        _fail(f"Not found: {issue_id}")

    if as_json:
        data = node_to_dict(node, include_children=False)
        click.echo(json_mod.dumps({**data, "children": [c.issue.id for c in node.children]}, indent=2))
        return

    issue = node.issue

    def ids(nodes: list[Node]) -> str:
        return ", ".join(n.issue.id for n in nodes)

    click.echo(f"ID:       {issue.id}")
    click.echo(f"Title:    {issue.title}")
    click.echo(f"Status:   {issue.status}")
    click.echo(f"Priority: P{issue.priority}")
    click.echo(f"Type:     {issue.issue_type}")
    click.echo(f"Depth:    {node.tree_depth}")
    if node.parents:
        click.echo(f"Parents:  {ids(node.parents)}")
    if node.children:
        click.echo(f"Children: {ids(node.children)}")
    if node.blocked_by:
        click.echo(f"Blocked by: {ids(node.blocked_by)}")
    if node.blocks:
        click.echo(f"Blocks:   {ids(node.blocks)}")
    if node.related:
        click.echo(f"Related:  {ids(node.related)}")
    if node.discovered_from:
        click.echo(f"Discovered from: {ids(node.discovered_from)}")
    if node.duplicate_of is not None:
        click.echo(f"Duplicate of: {node.duplicate_of.issue.id}")
    if node.superseded_by is not None:
        click.echo(f"Superseded by: {node.superseded_by.issue.id}")
    if node.has_in_progress:
        click.echo("Active:   YES (in progress here or below)")
    if node.has_ready:
        click.echo("Ready:    YES (ready work here or below)")
    if issue.description:
        click.echo(f"\n--- Description ---\n{issue.description}")


@cli.command()
@click.argument("export", required=False)
@click.option("--port", default=8378, type=int, help="Port (default 8378)")
def serve(export: str | None, port: int) -> None:
    """Serve the forest over a read-only HTTP API (requires grove[dashboard])."""
    try:
        from grove.dashboard import main as dashboard_main
    except ImportError:
        click.echo('Dashboard requires extra dependencies. Install with: pip install "grove[dashboard]"', err=True)
        sys.exit(1)

    try:
        path = resolve_export_path(export)
    except GroveError as e:
        _fail(str(e))
    _setup_logging()
    dashboard_main(path, port=port)


def main() -> None:
    cli()
