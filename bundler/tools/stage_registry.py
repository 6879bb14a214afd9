"""
Stage Registry - every stage name a plan may contain

The Planner emits stages by name; the engine maps each name onto the
tool that implements it. The registry lets an engine check a plan
before dispatching it and lets the CLI list what a pipeline runs.

In-process stages are implemented here (hooks on the Stage object);
the engine only has to call their hooks.
"""
from typing import Any, Dict, Iterable, List


class StageRegistry:
    """
    Central registry for all known stages

    The Planner uses these names; the engine validates against them.
    """

    def __init__(self):
        self._registry: Dict[str, Dict[str, Any]] = {}
        self._register_stages()

    def _register_stages(self):
        """Register all known stages, in pipeline order"""
        self._register(
            "postcss",
            description="Extract, prefix and minify imported stylesheets",
            tool="rollup-plugin-postcss",
        )
        self._register(
            "alias",
            description="Rewrite aliased module specifiers",
            tool="@rollup/plugin-alias",
        )
        self._register(
            "node-resolve",
            description="Resolve bare specifiers through node_modules (browser or node field priority)",
            tool="@rollup/plugin-node-resolve",
        )
        self._register(
            "commonjs",
            description="Interop shims for CommonJS dependencies",
            tool="@rollup/plugin-commonjs",
        )
        self._register(
            "json",
            description="Import JSON files as modules",
            tool="@rollup/plugin-json",
        )
        self._register(
            "shebang",
            description="Strip the executable shebang line, restored as banner on output",
            in_process=True,
        )
        self._register(
            "typescript",
            description="Strip types from .ts/.tsx sources",
            tool="rollup-plugin-typescript2",
        )
        self._register(
            "replace-expressions",
            description="Substitute defines inside dependency code",
            tool="babel-plugin-transform-replace-expressions",
        )
        self._register(
            "babel",
            description="Syntax lowering for the target format and environment",
            tool="@rollup/plugin-babel",
        )
        self._register(
            "terser",
            description="Minify output with a persisted identifier cache",
            tool="terser",
        )
        self._register(
            "size-report",
            description="Measure emitted code and resolve the step's size report",
            in_process=True,
        )

    def _register(self, name: str, description: str, tool: str = None, in_process: bool = False):
        self._registry[name] = {
            "name": name,
            "description": description,
            "tool": tool,
            "in_process": in_process,
        }

    def get_stage(self, name: str) -> Dict[str, Any]:
        """Get stage metadata by name"""
        if name not in self._registry:
            available = ", ".join(self._registry.keys())
            raise ValueError(f"Stage '{name}' not found. Available stages: {available}")
        return self._registry[name]

    def list_stages(self) -> List[str]:
        """List all known stage names, in pipeline order"""
        return list(self._registry.keys())

    def external_stages(self) -> List[str]:
        """Stages implemented by the engine's tools"""
        return [name for name, info in self._registry.items() if not info["in_process"]]

    def validate(self, names: Iterable[str]) -> None:
        """
        Raises:
            ValueError: If any name is unknown
        """
        for name in names:
            self.get_stage(name)


__all__ = ["StageRegistry"]
