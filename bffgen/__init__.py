"""Generate FASTBuild .bff build descriptions from per-target build facts."""

from .errors import ConfigError, CycleDetectedError, GenerationError, InternalError
from .facts import ProjectFacts, load_project, parse_project
from .generate import BuildGraph, compile_graph, render_bff, write_bff

__version__ = "0.1.0"

__all__ = [
    "BuildGraph",
    "ConfigError",
    "CycleDetectedError",
    "GenerationError",
    "InternalError",
    "ProjectFacts",
    "compile_graph",
    "load_project",
    "parse_project",
    "render_bff",
    "write_bff",
]
