"""Grove — sorted, status-annotated issue forests from issue-store exports."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("grove")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from grove.errors import CyclicDependencyError, GroveError
from grove.graph import GraphBuilder, Node, build
from grove.issues import Issue

__all__ = ["CyclicDependencyError", "GraphBuilder", "GroveError", "Issue", "Node", "__version__", "build"]
