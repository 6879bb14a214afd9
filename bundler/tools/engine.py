"""
Engine - contract for the service that runs a step's stages

The engine owns module resolution, parsing, lowering and minification.
This package only decides which stages run, with what options, and
where the results go. Whatever the engine, it must:

- call Stage.build_start() on every stage before building
- pass each module source through Stage.transform() in stage order
- honour InputConfig.external and the stage options
- update options["name_cache"] of the "terser" stage in place

Bundle.write() takes care of the rest (render hooks, banners, files,
write hooks) so every engine emits output the same way.
"""
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from bundler.errors import ExternalToolError
from bundler.schemas import EmittedAsset, InputConfig, OutputConfig, Stage

logger = logging.getLogger(__name__)


def run_build_start(stages: List[Stage]) -> None:
    for stage in stages:
        try:
            stage.build_start()
        except Exception as e:
            raise ExternalToolError(f"build_start failed: {e}", stage=stage.name) from e


def run_transform(stages: List[Stage], code: str, module_id: str) -> str:
    for stage in stages:
        try:
            code = stage.transform(code, module_id)
        except Exception as e:
            raise ExternalToolError(f"transform failed for {module_id}: {e}", stage=stage.name) from e
    return code


class Bundle(ABC):
    """Result of building one step, ready to be written"""

    def __init__(self, input_config: InputConfig, cache: Any = None, watch_files: Optional[List[Path]] = None):
        self.input_config = input_config
        # incremental cache handed to the next build
        self.cache = cache
        self.watch_files = watch_files or [input_config.input]

    @abstractmethod
    def generate(self, output_config: OutputConfig) -> Dict[str, EmittedAsset]:
        """Produce the output assets (file name -> asset) without writing them"""

    def write(self, output_config: OutputConfig) -> Dict[str, EmittedAsset]:
        """
        Generate, write to disk and run the write hooks

        Returns:
            Written assets keyed by file name

        Raises:
            ExternalToolError: If generation or a stage hook fails
            OSError: If the output directory is not writable
        """
        stages = self.input_config.stages
        assets = self.generate(output_config)

        banner = output_config.banner
        for asset in assets.values():
            if asset.code is None:
                continue
            for stage in stages:
                try:
                    asset.code = stage.render_chunk(asset.code, output_config)
                except Exception as e:
                    raise ExternalToolError(f"render_chunk failed for {asset.file_name}: {e}", stage=stage.name) from e
            if banner and asset.is_entry:
                asset.code = f"{banner}\n{asset.code}"

        out_dir = output_config.file.parent
        out_dir.mkdir(parents=True, exist_ok=True)
        for asset in assets.values():
            target = out_dir / asset.file_name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(asset.code if asset.code is not None else (asset.source or ""), encoding="utf-8")
            if output_config.sourcemap and asset.map:
                Path(f"{target}.map").write_text(asset.map, encoding="utf-8")
        logger.debug(f"[Engine] Wrote {len(assets)} files to {out_dir}")

        for stage in stages:
            try:
                stage.write_bundle(assets, output_config)
            except Exception as e:
                raise ExternalToolError(f"write_bundle failed: {e}", stage=stage.name) from e

        return assets


class Engine(ABC):
    """Builds one step's input configuration into a Bundle"""

    @abstractmethod
    def bundle(self, input_config: InputConfig, cache: Any = None) -> Bundle:
        """
        Build the step

        Args:
            input_config: Entry, external test and ordered stages
            cache: Incremental cache from a previous Bundle, or None

        Raises:
            ExternalToolError: If a stage fails
        """


__all__ = ["Engine", "Bundle", "run_build_start", "run_transform"]
