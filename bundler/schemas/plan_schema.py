"""
Plan Schema - Build Plan Format

This defines the build plan that the Planner produces and the
Executor / WatchOrchestrator run.

A BuildStep is complete: the engine never has to work out an output
path, an external decision or a stage option on its own.
"""
import threading
from concurrent.futures import Future
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from .options_schema import Format


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Stage(BaseModel):
    """
    One transformation stage of a pipeline

    Plain stages are configuration only: the engine maps `name` onto the
    tool that implements it. Stages that carry in-process behaviour
    override the hook methods below; the engine calls them in stage order.
    """
    name: str = Field(..., description="Stage identifier (e.g. 'node-resolve', 'babel', 'terser')")
    options: Dict[str, Any] = Field(default_factory=dict, description="Tool-specific configuration")

    def build_start(self) -> None:
        """Called before each build"""

    def transform(self, code: str, module_id: str) -> str:
        """Called with each module's source; returns the (possibly rewritten) source"""
        return code

    def render_chunk(self, code: str, output_config: "OutputConfig") -> str:
        """Called with each emitted chunk before it is written"""
        return code

    def write_bundle(self, assets: Dict[str, "EmittedAsset"], output_config: "OutputConfig") -> None:
        """Called once the output files have been written"""


class InputConfig(BaseModel):
    """Pipeline input configuration for one step"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    input: Path = Field(..., description="Entry module")
    use_cache: bool = Field(True, description="Whether an incremental cache from another build may be reused")
    external: Callable[[str], bool] = Field(..., exclude=True, description="External-test predicate")
    external_names: List[str] = Field(default_factory=list, description="Module prefixes treated as external")
    never_external: List[str] = Field(default_factory=list, description="Modules always bundled, even under an external prefix")
    treeshake: Dict[str, Any] = Field(default_factory=lambda: {"property_read_side_effects": False})
    stages: List[Stage] = Field(default_factory=list)

    def stage_names(self) -> List[str]:
        return [stage.name for stage in self.stages]

    def get_stage(self, name: str) -> Optional[Stage]:
        for stage in self.stages:
            if stage.name == name:
                return stage
        return None


class OutputConfig(BaseModel):
    """Pipeline output configuration for one step"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    file: Path = Field(..., description="Target file")
    format: str = Field(..., description="Engine module format: cjs, es or umd")
    name: str = Field(..., description="Build name / UMD global")
    globals: Dict[str, str] = Field(default_factory=dict)
    paths: Dict[str, str] = Field(default_factory=dict, description="Import specifier rewrites")
    sourcemap: bool = Field(True)
    strict: bool = Field(False)
    legacy: bool = Field(True)
    freeze: bool = Field(False)
    es_module: bool = Field(False)
    primary: bool = Field(False, description="Responsible for plan-wide side effects")

    banner_provider: Optional[Callable[[], Optional[str]]] = Field(None, exclude=True)

    @property
    def banner(self) -> Optional[str]:
        """Resolved lazily, the shebang is only known once the entry has been transformed"""
        if self.banner_provider is None:
            return None
        return self.banner_provider()


class EmittedAsset(BaseModel):
    """A file produced by a build"""
    file_name: str
    code: Optional[str] = Field(None, description="None for non-code assets (e.g. stylesheets)")
    source: Optional[str] = Field(None, description="Raw content of non-code assets")
    map: Optional[str] = Field(None, description="Sourcemap JSON")
    is_entry: bool = Field(False)


class DeferredReport:
    """
    Size report of a step, resolved by the size-report stage

    Each build resolves a fresh future so watch-mode rebuilds don't
    observe the text of a previous build.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._future: Future = Future()

    def reset(self) -> None:
        with self._lock:
            if self._future.done():
                self._future = Future()

    def resolve(self, text: str) -> None:
        with self._lock:
            if self._future.done():
                self._future = Future()
            self._future.set_result(text)

    def fail(self, error: BaseException) -> None:
        with self._lock:
            if self._future.done():
                self._future = Future()
            self._future.set_exception(error)

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: Optional[float] = None) -> str:
        with self._lock:
            future = self._future
        return future.result(timeout=timeout)


class BuildStep(BaseModel):
    """The unit produced for one (entry, format) pair"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    step_id: str = Field(..., description="Unique step identifier, e.g. 'index:cjs'")
    entry: Path
    format: Format
    primary: bool = Field(False)
    input_config: InputConfig
    output_config: OutputConfig
    size_report: DeferredReport = Field(default_factory=DeferredReport, exclude=True)

    @property
    def output_file(self) -> Path:
        return self.output_config.file


class BuildPlan(BaseModel):
    """Ordered collection of build steps, |entries| x |formats| long"""
    name: str
    cwd: Path
    output: Path = Field(..., description="Main output file")
    steps: List[BuildStep]
    created_at: datetime = Field(default_factory=_utc_now)

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def primary_step(self) -> BuildStep:
        return next(step for step in self.steps if step.primary)

    def output_files(self) -> List[Path]:
        return [step.output_file for step in self.steps]

    def get_step(self, step_id: str) -> Optional[BuildStep]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None


class StepReport(BaseModel):
    """Outcome of one executed step"""
    step_id: str
    output_file: Path
    size_report: str
    assets: List[str] = Field(default_factory=list)


class BuildResult(BaseModel):
    """Outcome of a batch build"""
    name: str
    report: str = Field(..., description="Aggregated human-readable size report")
    steps: List[StepReport] = Field(default_factory=list)
    execution_log: List[str] = Field(default_factory=list)


class WatchEventCode(str, Enum):
    """Watcher events"""
    START = "START"
    END = "END"
    ERROR = "ERROR"


class WatchEvent(BaseModel):
    """Notification published by a step watcher"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    code: WatchEventCode
    step_id: str
    output_file: Path
    duration: Optional[float] = Field(None, description="Seconds spent building")
    size_report: Optional[str] = None
    error: Optional[BaseException] = Field(None, exclude=True)
    timestamp: datetime = Field(default_factory=_utc_now)
