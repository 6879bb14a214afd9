"""
Executor - Runs a Build Plan once

Responsibilities:
- Run steps strictly in sequence, in plan order (cjs first)
- Hand each step the previous build as incremental cache
  (except modern steps, which always build clean)
- Collect each step's size report
- Stop at the first failure and propagate it

The Executor is mechanical - it just runs the plan.
"""
import logging
import os
from typing import Any, Callable, List, Optional

from bundler.errors import BundlerError, ExternalToolError
from bundler.schemas import BuildPlan, BuildResult, BuildStep, StepReport
from bundler.tools.engine import Engine
from .size_report import format_build_report

logger = logging.getLogger(__name__)

# seconds to wait for a size report once the files are written
REPORT_TIMEOUT = 60


class Executor:
    """
    Executor - batch mode

    Steps run one at a time so that the incremental cache can be reused
    and the first failure is the one reported.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self.execution_log: List[str] = []

    def execute(
        self,
        plan: BuildPlan,
        progress_callback: Optional[Callable[[str], None]] = None
    ) -> BuildResult:
        """
        Execute every step of the plan

        Args:
            plan: Build plan to execute
            progress_callback: Optional callback for progress updates

        Returns:
            BuildResult with the aggregated report

        Raises:
            BundlerError: From the first failing step; remaining steps are skipped
        """
        def log(msg: str):
            self.execution_log.append(msg)
            if progress_callback:
                progress_callback(msg)
            logger.info(f"[Executor] {msg}")

        log(f"Starting build of {plan.total_steps} steps")

        cache: Any = None
        reports: List[StepReport] = []
        for index, step in enumerate(plan.steps, start=1):
            log(f"[{index}/{plan.total_steps}] Building {step.step_id}")
            try:
                report, bundle = self._execute_step(step, cache)
            except BundlerError as e:
                log(f"✗ {step.step_id} failed: {e}")
                raise
            except Exception as e:
                log(f"✗ {step.step_id} failed: {e}")
                raise ExternalToolError(f"Build of {step.step_id} failed: {e}", stage="engine") from e

            # the modern build neither consumes nor feeds the shared cache
            if step.input_config.use_cache:
                cache = bundle
            reports.append(report)
            log(f"✓ Wrote {step.output_file.name}")

        log(f"✓ Build complete: {len(reports)}/{plan.total_steps} steps")

        target_dir = os.path.relpath(plan.output.parent, plan.cwd)
        report_text = format_build_report(plan.name, target_dir, [r.size_report for r in reports])

        return BuildResult(
            name=plan.name,
            report=report_text,
            steps=reports,
            execution_log=list(self.execution_log),
        )

    def _execute_step(self, step: BuildStep, cache: Any):
        """Build, write and wait for the size report of one step"""
        bundle = self.engine.bundle(step.input_config, cache if step.input_config.use_cache else None)
        assets = bundle.write(step.output_config)
        text = step.size_report.result(timeout=REPORT_TIMEOUT)

        report = StepReport(
            step_id=step.step_id,
            output_file=step.output_file,
            size_report=text,
            assets=sorted(assets),
        )
        return report, bundle


__all__ = ["Executor", "REPORT_TIMEOUT"]
