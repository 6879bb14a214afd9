"""
Schemas for the bundle planner

These schemas define the contracts between pipeline components:
- Options: what the caller asked for (raw and resolved)
- Manifest: package metadata
- Plan: per (entry, format) pipeline configuration
"""
from .options_schema import (
    Format,
    FORMAT_ALIASES,
    Target,
    TARGET_ALIASES,
    InvocationOptions,
    BuildOptions,
)
from .manifest_schema import ManifestInfo
from .plan_schema import (
    Stage,
    InputConfig,
    OutputConfig,
    EmittedAsset,
    DeferredReport,
    BuildStep,
    BuildPlan,
    StepReport,
    BuildResult,
    WatchEvent,
    WatchEventCode,
)

__all__ = [
    # Options
    "Format",
    "FORMAT_ALIASES",
    "Target",
    "TARGET_ALIASES",
    "InvocationOptions",
    "BuildOptions",
    # Manifest
    "ManifestInfo",
    # Plan
    "Stage",
    "InputConfig",
    "OutputConfig",
    "EmittedAsset",
    "DeferredReport",
    "BuildStep",
    "BuildPlan",
    "StepReport",
    "BuildResult",
    "WatchEvent",
    "WatchEventCode",
]
