"""
Core Pipeline Components

These components turn one invocation into files on disk:
1. Options - Invocation + Manifest → BuildOptions
2. Paths - Entries, main output, per-format output files
3. Externals - Bundled vs external module decisions
4. Stages - Ordered stage list per (entry, format)
5. Planner - BuildOptions → BuildPlan
6. Executor - Runs a BuildPlan once (batch mode)
7. Watcher - Rebuilds every step on change (watch mode)
"""
from .manifest import load_manifest, get_name, safe_variable_name, remove_scope
from .options import resolve_build_options, parse_formats
from .externals import ExternalClassifier
from .shebang import ShebangTable
from .name_cache import NameCache, NameCacheStore
from .stages import StageAssembler, TRANSFORM_PROFILES
from .planner import Planner
from .executor import Executor
from .watcher import WatchOrchestrator, WatchSession, StepWatcher

__all__ = [
    "load_manifest",
    "get_name",
    "safe_variable_name",
    "remove_scope",
    "resolve_build_options",
    "parse_formats",
    "ExternalClassifier",
    "ShebangTable",
    "NameCache",
    "NameCacheStore",
    "StageAssembler",
    "TRANSFORM_PROFILES",
    "Planner",
    "Executor",
    "WatchOrchestrator",
    "WatchSession",
    "StepWatcher",
]
