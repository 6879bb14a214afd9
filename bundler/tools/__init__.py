"""
Engine-side tools

The engine runs the stages a BuildStep lists; the registry knows
which stage names exist.
"""
from .engine import Engine, Bundle, run_build_start, run_transform
from .stage_registry import StageRegistry
from .subprocess_engine import SubprocessEngine, SubprocessBundle

__all__ = [
    "Engine",
    "Bundle",
    "run_build_start",
    "run_transform",
    "StageRegistry",
    "SubprocessEngine",
    "SubprocessBundle",
]
