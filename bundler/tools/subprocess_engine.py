"""
Subprocess Engine - runs a step through an external bundler driver

The driver is a separate program (by default a node script) that reads
one JSON request on stdin and answers with one JSON document on stdout:

    request:  {"input": {...stages, entry_code, cache}, "output": {...}}
    response: {"assets": [{"file_name", "code", "map", "is_entry"}],
               "name_cache": {...}, "cache": ..., "watch_files": [...],
               "error": {"stage": ..., "message": ...}}

External modules: a specifier is external when it equals, or sits
below, one of `input.external_names` (a "." entry stands for the main
module of a multi-entry build) and is not listed in
`input.never_external`, which wins.

The entry source is run through the in-process transform hooks here,
before the driver sees it.
"""
import json
import logging
import shlex
import subprocess
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from bundler import config
from bundler.errors import ExternalToolError
from bundler.schemas import EmittedAsset, InputConfig, OutputConfig
from .engine import Bundle, Engine, run_build_start, run_transform
from .stage_registry import StageRegistry

logger = logging.getLogger(__name__)

# keep the tail of the driver's stderr in diagnostics
DIAGNOSTIC_TAIL = 2000


class SubprocessBundle(Bundle):
    """A prepared step; the driver runs when the bundle is generated"""

    def __init__(self, engine: "SubprocessEngine", input_config: InputConfig, entry_code: str, cache: Any = None):
        super().__init__(input_config, cache=cache)
        self.engine = engine
        self.entry_code = entry_code

    def generate(self, output_config: OutputConfig) -> Dict[str, EmittedAsset]:
        request = {
            "input": {
                **self.input_config.model_dump(mode="json"),
                "entry_code": self.entry_code,
                "cache": self.cache,
            },
            "output": {
                **output_config.model_dump(mode="json"),
                "banner": output_config.banner,
            },
        }
        response = self.engine.run_driver(request)

        name_cache = response.get("name_cache")
        minify = self.input_config.get_stage("terser")
        if name_cache and minify is not None and minify.options.get("name_cache") is not None:
            minify.options["name_cache"].update(name_cache)

        self.cache = response.get("cache", self.cache)
        if response.get("watch_files"):
            self.watch_files = [Path(file) for file in response["watch_files"]]

        try:
            assets = [EmittedAsset.model_validate(asset) for asset in response.get("assets", [])]
        except ValueError as e:
            raise ExternalToolError("Driver returned malformed assets", stage="engine", diagnostic=str(e)) from e
        return {asset.file_name: asset for asset in assets}


class SubprocessEngine(Engine):
    """
    Engine backed by an external driver command

    Wraps the driver process the way a build tool is wrapped: capture
    output, enforce a timeout, turn failures into ExternalToolError.
    """

    def __init__(
        self,
        command: Optional[Union[str, List[str]]] = None,
        cwd: Optional[Path] = None,
        timeout: Optional[int] = None,
        registry: Optional[StageRegistry] = None
    ):
        command = command or config.ENGINE_COMMAND
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        self.cwd = Path(cwd) if cwd else None
        self.timeout = timeout or config.ENGINE_TIMEOUT
        self.registry = registry or StageRegistry()

    def bundle(self, input_config: InputConfig, cache: Any = None) -> Bundle:
        try:
            self.registry.validate(input_config.stage_names())
        except ValueError as e:
            raise ExternalToolError(str(e), stage="engine") from e

        run_build_start(input_config.stages)

        try:
            source = input_config.input.read_text(encoding="utf-8")
        except OSError as e:
            raise ExternalToolError(f"Unable to read entry {input_config.input}: {e}", stage="engine") from e

        entry_code = run_transform(input_config.stages, source, str(input_config.input))
        # a previous Bundle is reduced to the driver's own cache token
        if isinstance(cache, Bundle):
            cache = cache.cache
        return SubprocessBundle(self, input_config, entry_code, cache=cache)

    def run_driver(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """
        Run the driver once

        Raises:
            ExternalToolError: On launch failure, timeout, non-zero exit,
                unparsable output or a stage error reported by the driver
        """
        logger.debug(f"[Engine] Running: {' '.join(self.command)}")
        try:
            result = subprocess.run(
                self.command,
                input=json.dumps(request),
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExternalToolError(f"Driver timed out after {self.timeout} seconds", stage="engine") from e
        except OSError as e:
            raise ExternalToolError(f"Unable to start driver {self.command[0]}: {e}", stage="engine") from e

        if result.returncode != 0:
            stage, message = self._reported_error(result.stdout)
            raise ExternalToolError(
                message or f"Driver failed with exit code {result.returncode}",
                stage=stage or "engine",
                diagnostic=result.stderr[-DIAGNOSTIC_TAIL:],
            )

        try:
            response = json.loads(result.stdout)
        except ValueError as e:
            raise ExternalToolError(
                "Driver output is not valid JSON",
                stage="engine",
                diagnostic=result.stdout[-DIAGNOSTIC_TAIL:],
            ) from e

        if response.get("error"):
            error = response["error"]
            raise ExternalToolError(
                error.get("message", "Stage failed"),
                stage=error.get("stage"),
                diagnostic=error.get("diagnostic") or result.stderr[-DIAGNOSTIC_TAIL:],
            )
        return response

    @staticmethod
    def _reported_error(stdout: str):
        try:
            error = json.loads(stdout).get("error") or {}
        except (ValueError, AttributeError):
            return None, None
        return error.get("stage"), error.get("message")


__all__ = ["SubprocessEngine", "SubprocessBundle"]
