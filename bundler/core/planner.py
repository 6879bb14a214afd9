"""
Planner - Options + Manifest → Build Plan

Responsibilities:
- Cross every entry with every requested format
- Derive each step's output file, external test and stage list
- Mark exactly one step (first entry x first format) as primary
- Fail loudly when two steps would write the same file

The Planner does ALL the deciding: the engine never has to work out a
path, an external decision or a stage option on its own.
"""
import logging
from pathlib import Path
from typing import Dict, List, Optional

from bundler.schemas import (
    BuildOptions,
    BuildPlan,
    BuildStep,
    DeferredReport,
    Format,
    InputConfig,
    ManifestInfo,
    OutputConfig,
)
from bundler.errors import ConfigurationError
from .externals import ExternalClassifier
from .name_cache import NameCacheStore
from .paths import output_file_for
from .shebang import ShebangTable
from .stages import StageAssembler

logger = logging.getLogger(__name__)


class Planner:
    """
    Planner - Converts resolved options into a BuildPlan

    The shebang table and name cache store are scoped to the owner of
    the Planner (usually one BundlePipeline) and shared by every step.
    """

    def __init__(
        self,
        shebangs: Optional[ShebangTable] = None,
        name_cache_store: Optional[NameCacheStore] = None
    ):
        self.shebangs = shebangs or ShebangTable()
        self.name_cache_store = name_cache_store

    def plan(self, options: BuildOptions, manifest: ManifestInfo) -> BuildPlan:
        """
        Create the build plan

        Args:
            options: Resolved build options
            manifest: Package metadata

        Returns:
            BuildPlan with |entries| x |formats| steps

        Raises:
            ConfigurationError: If there is nothing to build or output files collide
        """
        if not options.entries:
            raise ConfigurationError("No entry modules to build")
        if not options.formats:
            raise ConfigurationError("No output formats requested")

        store = self.name_cache_store or NameCacheStore(
            options.cwd,
            manifest.raw_minify,
            enabled=options.name_cache,
        )
        classifier = ExternalClassifier(options, manifest)
        assembler = StageAssembler(options, manifest, self.shebangs, store)

        steps: List[BuildStep] = []
        for i, entry in enumerate(options.entries):
            for j, format in enumerate(options.formats):
                steps.append(
                    self._create_step(options, manifest, classifier, assembler, entry, format, i == 0 and j == 0)
                )

        self._check_distinct_outputs(steps)

        plan = BuildPlan(
            name=options.name,
            cwd=options.cwd,
            output=options.output,
            steps=steps,
        )
        logger.info(f"[Planner] Planned {plan.total_steps} steps for \"{plan.name}\"")
        for step in steps:
            logger.debug(f"[Planner]   {step.step_id} -> {step.output_file} ({', '.join(step.input_config.stage_names())})")
        return plan

    def _create_step(
        self,
        options: BuildOptions,
        manifest: ManifestInfo,
        classifier: ExternalClassifier,
        assembler: StageAssembler,
        entry: Path,
        format: Format,
        primary: bool
    ) -> BuildStep:
        report = DeferredReport()

        input_config = InputConfig(
            input=entry,
            # the modern build must not reuse modules lowered for a legacy target
            use_cache=not format.is_modern,
            external=classifier.predicate_for(entry),
            external_names=classifier.external_names_for(entry),
            never_external=classifier.never_external(),
            stages=assembler.assemble(entry, format, primary, report),
        )

        paths: Dict[str, str] = {}
        # entries import the main module as ".", point it at the main output
        if options.multiple_entries:
            paths["."] = "./" + options.output.name

        build_name = options.name
        output_config = OutputConfig(
            file=output_file_for(options, manifest, entry, format),
            format=format.module_format,
            name=build_name,
            globals=dict(classifier.globals),
            paths=paths,
            sourcemap=options.sourcemap,
            strict=options.strict,
            primary=primary,
            banner_provider=lambda: self.shebangs.get(build_name),
        )

        return BuildStep(
            step_id=self._step_id(options, entry, format),
            entry=entry,
            format=format,
            primary=primary,
            input_config=input_config,
            output_config=output_config,
            size_report=report,
        )

    @staticmethod
    def _step_id(options: BuildOptions, entry: Path, format: Format) -> str:
        try:
            label = entry.relative_to(options.cwd).as_posix()
        except ValueError:
            label = entry.as_posix()
        return f"{label}:{format.value}"

    @staticmethod
    def _check_distinct_outputs(steps: List[BuildStep]) -> None:
        seen: Dict[Path, str] = {}
        for step in steps:
            other = seen.get(step.output_file)
            if other:
                raise ConfigurationError(
                    f"Steps {other} and {step.step_id} would both write {step.output_file}"
                )
            seen[step.output_file] = step.step_id


__all__ = ["Planner"]
