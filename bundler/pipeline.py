"""
Main Pipeline - Orchestrates one bundling invocation

This module wires together all pipeline components:
Manifest → Options → Planner → Executor (batch) | WatchOrchestrator (watch)

Usage:
    pipeline = BundlePipeline(engine=SubprocessEngine())
    result = pipeline.build(InvocationOptions(cwd="path/to/pkg"))
    print(result.report)
"""
import logging
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from bundler.schemas import BuildOptions, BuildPlan, BuildResult, InvocationOptions, ManifestInfo, WatchEvent
from bundler.core.manifest import load_manifest
from bundler.core.options import resolve_build_options
from bundler.core.name_cache import NameCacheStore
from bundler.core.shebang import ShebangTable
from bundler.core.planner import Planner
from bundler.core.executor import Executor
from bundler.core.watcher import WatchOrchestrator, WatchSession
from bundler.tools.engine import Engine
from bundler.tools.subprocess_engine import SubprocessEngine

logger = logging.getLogger(__name__)


class BundlePipeline:
    """
    Complete bundling pipeline

    The shebang table lives as long as the pipeline, the name cache
    store is recreated whenever the working directory, the manifest's
    minify settings or the caching flag change between invocations.
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        output: Callable[[str], None] = print
    ):
        """
        Initialize pipeline

        Args:
            engine: Engine that runs the stages (defaults to the configured driver)
            output: Sink for human-facing watch notifications
        """
        self.engine = engine
        self.output = output
        self.shebangs = ShebangTable()
        self.name_cache_store: Optional[NameCacheStore] = None

        # Execution log
        self.execution_log: List[str] = []

    def prepare(self, invocation: InvocationOptions) -> Tuple[BuildPlan, BuildOptions, ManifestInfo]:
        """
        Load the manifest, resolve options and synthesize the plan

        Raises:
            ConfigurationError: If the invocation cannot produce a plan
        """
        cwd = Path(invocation.cwd).resolve()
        manifest, has_manifest = load_manifest(cwd)
        options = resolve_build_options(invocation, manifest, has_manifest)

        store = self.name_cache_store
        if store is None or not store.matches(options.cwd, manifest.raw_minify, options.name_cache):
            store = NameCacheStore(options.cwd, manifest.raw_minify, enabled=options.name_cache)
            self.name_cache_store = store

        planner = Planner(shebangs=self.shebangs, name_cache_store=store)
        plan = planner.plan(options, manifest)
        return plan, options, manifest

    def _engine_for(self, options: BuildOptions) -> Engine:
        if self.engine is None:
            self.engine = SubprocessEngine(cwd=options.cwd)
        return self.engine

    def build(
        self,
        invocation: InvocationOptions,
        progress_callback: Optional[Callable[[str], None]] = None
    ) -> BuildResult:
        """
        Build every step once

        Returns:
            BuildResult whose `report` is the aggregated size report

        Raises:
            ConfigurationError: If no plan can be made
            ExternalToolError: From the first failing step
        """
        plan, options, _ = self.prepare(invocation)
        executor = Executor(self._engine_for(options))
        result = executor.execute(plan, progress_callback=progress_callback)
        self.execution_log.extend(result.execution_log)
        return result

    def watch(
        self,
        invocation: InvocationOptions,
        on_build: Optional[Callable[[WatchEvent], None]] = None,
        poll_seconds: Optional[float] = None,
        debounce_seconds: Optional[float] = None
    ) -> WatchSession:
        """
        Start one watcher per step

        Returns:
            A started WatchSession; stop() it (or use it as a context manager) to end watching

        Raises:
            ConfigurationError: If no plan can be made
        """
        plan, options, _ = self.prepare(invocation)
        orchestrator = WatchOrchestrator(
            self._engine_for(options),
            poll_seconds=poll_seconds,
            debounce_seconds=debounce_seconds,
            output=self.output,
        )
        # the primary step rewrites the cache file after every build
        excludes = [self.name_cache_store.path] if self.name_cache_store else []
        return orchestrator.watch(plan, on_build=on_build, extra_excludes=excludes)


__all__ = ["BundlePipeline"]
