"""
Pipeline Stage Assembler

Responsibilities:
- Build the ordered stage list for one (entry, format) pair
- Pick transform settings from the Format x Target profile table
- Wire the in-process stages (shebang stripping, name cache, size report)
  to the plan-scoped state they share

Stage order:
  postcss -> alias -> node-resolve -> commonjs -> json -> shebang
  -> typescript -> replace-expressions -> babel -> terser -> size-report
"""
import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field, PrivateAttr

from bundler import config
from bundler.schemas import (
    BuildOptions,
    DeferredReport,
    EmittedAsset,
    Format,
    ManifestInfo,
    OutputConfig,
    Stage,
    Target,
)
from .name_cache import NameCache, NameCacheStore, merge_minify_options
from .options import (
    normalize_minify_options,
    parse_alias_argument,
    parse_mapping_argument,
    to_replacement_expression,
)
from .shebang import ShebangTable
from .size_report import size_report_text

logger = logging.getLogger(__name__)

ESMODULES_TARGET = {"esmodules": True}
TYPED_EXTENSIONS = {".ts", ".tsx"}

MINIFY_COMPRESS_DEFAULTS = {
    "keep_infinity": True,
    "pure_getters": True,
    "passes": 10,
}


# ============================================================================
# Transform profiles (Format x Target)
# ============================================================================

class TransformProfile(BaseModel):
    """Syntax-lowering settings for one Format x Target combination"""
    modern: bool
    preset: str = Field(..., description="Environment preset")
    targets: Optional[Dict[str, Any]] = Field(None, description="Preset targets, None = preset defaults")
    async_to_promises: bool = Field(..., description="Rewrite async functions to promise chains")
    fast_rest: bool = Field(..., description="Inline argument lists instead of spreading")
    regenerator: bool = Field(..., description="Lower generators")
    ecma: int = Field(..., description="Minifier grammar ceiling")
    toplevel: bool = Field(..., description="Minifier may rename top-level declarations")


def _node_targets() -> Dict[str, Any]:
    return {"node": config.NODE_TARGET}


def _profile(format: Format, target: Target) -> TransformProfile:
    modern = format.is_modern
    node = target is Target.NODE
    if modern:
        return TransformProfile(
            modern=True,
            preset="@babel/preset-modules",
            targets=ESMODULES_TARGET,
            async_to_promises=False,
            fast_rest=False,
            regenerator=False,
            ecma=9,
            toplevel=True,
        )
    return TransformProfile(
        modern=False,
        preset="@babel/preset-env",
        targets=_node_targets() if node else None,
        async_to_promises=True,
        # unnecessary on a server runtime
        fast_rest=not node,
        regenerator=True,
        ecma=5,
        # UMD/global output needs stable top-level names
        toplevel=format in (Format.CJS, Format.ES),
    )


TRANSFORM_PROFILES: Dict[Tuple[Format, Target], TransformProfile] = {
    (Format.CJS, Target.BROWSER): _profile(Format.CJS, Target.BROWSER),
    (Format.CJS, Target.NODE): _profile(Format.CJS, Target.NODE),
    (Format.ES, Target.BROWSER): _profile(Format.ES, Target.BROWSER),
    (Format.ES, Target.NODE): _profile(Format.ES, Target.NODE),
    (Format.UMD, Target.BROWSER): _profile(Format.UMD, Target.BROWSER),
    (Format.UMD, Target.NODE): _profile(Format.UMD, Target.NODE),
    (Format.MODERN, Target.BROWSER): _profile(Format.MODERN, Target.BROWSER),
    (Format.MODERN, Target.NODE): _profile(Format.MODERN, Target.NODE),
}


# ============================================================================
# In-process stages
# ============================================================================

class ShebangStage(Stage):
    """Strips the shebang from module sources into the ShebangTable"""
    name: str = "shebang"
    _table: ShebangTable = PrivateAttr()

    def __init__(self, table: ShebangTable, build_name: str, **data):
        super().__init__(options={"build_name": build_name}, **data)
        self._table = table

    def transform(self, code: str, module_id: str) -> str:
        return self._table.strip(self.options["build_name"], code)


class MinifyStage(Stage):
    """
    Minification with a persisted identifier cache

    Before each build the cache file is re-read and merged into the
    options. The engine updates options["name_cache"] in place; after
    the write the primary step persists it.
    """
    name: str = "terser"
    _store: NameCacheStore = PrivateAttr()
    _primary: bool = PrivateAttr(False)
    _cache_minify: Dict[str, Any] = PrivateAttr(default_factory=dict)

    def __init__(self, store: NameCacheStore, primary: bool, options: Dict[str, Any], **data):
        super().__init__(options=options, **data)
        self._store = store
        self._primary = primary
        self.build_start()

    def build_start(self) -> None:
        loaded = self._store.load()
        self._cache_minify = loaded.cache.minify

        minify_options = normalize_minify_options(
            merge_minify_options(self._store.explicit_options, loaded.cache.minify)
        )
        compress = dict(MINIFY_COMPRESS_DEFAULTS)
        if isinstance(minify_options.get("compress"), dict):
            compress.update(minify_options["compress"])

        mangle = minify_options.get("mangle")
        self.options["compress"] = compress
        self.options["mangle"] = mangle if isinstance(mangle, bool) else copy.deepcopy(mangle or {})
        self.options["name_cache"] = loaded.cache.mapping if self._store.enabled else None

    def write_bundle(self, assets: Dict[str, EmittedAsset], output_config: OutputConfig) -> None:
        mapping = self.options.get("name_cache")
        if self._primary and mapping is not None:
            self._store.save(NameCache(mapping=mapping, minify=self._cache_minify))


class SizeReportStage(Stage):
    """Always last: measures emitted code and resolves the step's deferred report"""
    name: str = "size-report"
    _report: DeferredReport = PrivateAttr()

    def __init__(self, report: DeferredReport, raw: bool = False, **data):
        super().__init__(options={"raw": raw}, **data)
        self._report = report

    def build_start(self) -> None:
        self._report.reset()

    def write_bundle(self, assets: Dict[str, EmittedAsset], output_config: OutputConfig) -> None:
        try:
            self._report.resolve(size_report_text(assets.values(), self.options["raw"]))
        except Exception as e:
            self._report.fail(e)
            raise


# ============================================================================
# Assembler
# ============================================================================

class StageAssembler:
    """
    Assembles stage lists for every step of one plan

    Defines and aliases are parsed once, the shared state objects are
    injected by the Planner.
    """

    def __init__(
        self,
        options: BuildOptions,
        manifest: ManifestInfo,
        shebangs: ShebangTable,
        name_cache_store: NameCacheStore
    ):
        self.options = options
        self.manifest = manifest
        self.shebangs = shebangs
        self.name_cache_store = name_cache_store

        self.defines: Dict[str, str] = {}
        if options.define:
            self.defines = parse_mapping_argument(options.define, to_replacement_expression)
        self.aliases = parse_alias_argument(options.alias, options.cwd) if options.alias else []

    def profile(self, format: Format) -> TransformProfile:
        return TRANSFORM_PROFILES[(format, self.options.target)]

    def assemble(self, entry: Path, format: Format, primary: bool, report: DeferredReport) -> List[Stage]:
        """Ordered stage list for one (entry, format) pair"""
        typed = Path(entry).suffix in TYPED_EXTENSIONS
        profile = self.profile(format)

        stages: List[Optional[Stage]] = [
            self._css_stage(primary),
            self._alias_stage(),
            self._resolve_stage(),
            Stage(name="commonjs", options={"include": r"/node_modules/"}),
            Stage(name="json"),
            ShebangStage(self.shebangs, self.options.name),
            self._typescript_stage(format) if typed else None,
            self._replace_stage(),
            self._babel_stage(profile, typed),
            self._minify_stage(profile, primary) if self.options.compress else None,
            SizeReportStage(report, raw=self.options.raw),
        ]
        return [stage for stage in stages if stage is not None]

    def _css_stage(self, primary: bool) -> Stage:
        plugins = ["autoprefixer"]
        if self.options.compress:
            plugins.append("cssnano")

        css_modules = self.options.css_modules
        if isinstance(css_modules, str) and css_modules not in ("true", "false"):
            modules: Any = {"generateScopedName": css_modules}
            auto_modules = False
        elif css_modules is None:
            modules = None
            auto_modules = True
        else:
            modules = css_modules in (True, "true")
            auto_modules = False

        return Stage(
            name="postcss",
            options={
                "plugins": plugins,
                "auto_modules": auto_modules,
                "modules": modules,
                "inject": False,
                # only the primary step writes the stylesheet
                "extract": str(self.options.output.parent / f"{self.options.name}.css") if primary else False,
            },
        )

    def _alias_stage(self) -> Optional[Stage]:
        if not self.aliases:
            return None
        return Stage(name="alias", options={"resolve": list(config.EXTENSIONS), "entries": self.aliases})

    def _resolve_stage(self) -> Stage:
        node = self.options.target is Target.NODE
        return Stage(
            name="node-resolve",
            options={
                "main_fields": ["module", "jsnext", "main"],
                "browser": not node,
                "extensions": list(config.RESOLVE_EXTENSIONS),
                "prefer_builtins": node,
            },
        )

    def _typescript_stage(self, format: Format) -> Stage:
        jsx_factory = None if self.options.jsx == "React.createElement" else self.options.jsx
        return Stage(
            name="typescript",
            options={
                "cache_root": f"./node_modules/.cache/.rts2_cache_{format.value}",
                "tsconfig": self.options.tsconfig,
                "tsconfig_defaults": {
                    "compilerOptions": {
                        "sourceMap": self.options.sourcemap,
                        "declaration": True,
                        "jsx": "react",
                        "jsxFactory": jsx_factory,
                    },
                },
                "tsconfig_override": {"compilerOptions": {"target": "esnext"}},
            },
        )

    def _replace_stage(self) -> Optional[Stage]:
        # traversing node_modules is only worth it when there is something to replace
        if not self.defines:
            return None
        return Stage(
            name="replace-expressions",
            options={"include": "node_modules/**", "replace": dict(self.defines)},
        )

    def _babel_stage(self, profile: TransformProfile, typed: bool) -> Stage:
        plugins: List[Dict[str, Any]] = [
            {"name": "@babel/plugin-syntax-import-meta"},
            {
                "name": "@babel/plugin-transform-react-jsx",
                "pragma": self.options.jsx,
                "pragmaFrag": self.options.jsx_fragment,
            },
        ]
        if not typed:
            plugins.append({"name": "@babel/plugin-transform-flow-strip-types"})
        if self.defines:
            plugins.append({"name": "babel-plugin-transform-replace-expressions", "replace": dict(self.defines)})
        if profile.async_to_promises:
            plugins.append({
                "name": "babel-plugin-transform-async-to-promises",
                "inlineHelpers": True,
                "externalHelpers": False,
                "minify": True,
            })
        if profile.fast_rest:
            plugins.append({"name": "transform-fast-rest", "helper": False, "literal": True})
        plugins.append({"name": "@babel/plugin-proposal-class-properties", "loose": True})
        if profile.regenerator:
            plugins.append({"name": "@babel/plugin-transform-regenerator", "async": False})
        plugins.append({"name": "babel-plugin-macros"})

        return Stage(
            name="babel",
            options={
                "extensions": list(config.EXTENSIONS),
                "exclude": "node_modules/**",
                "pass_per_preset": True,
                "modern": profile.modern,
                "compress": self.options.compress,
                "typescript": typed,
                "presets": [{
                    "name": profile.preset,
                    "targets": profile.targets,
                    "modules": False,
                    "loose": True,
                    "useBuiltIns": False,
                    "exclude": ["transform-async-to-generator", "transform-regenerator"],
                }],
                "plugins": plugins,
                "generator": {
                    "minified": self.options.compress,
                    "compact": self.options.compress,
                    "preserve_comments": r"[@#]__PURE__",
                },
            },
        )

    def _minify_stage(self, profile: TransformProfile, primary: bool) -> Stage:
        return MinifyStage(
            self.name_cache_store,
            primary,
            options={
                "sourcemap": True,
                "warnings": True,
                "ecma": profile.ecma,
                "toplevel": profile.toplevel,
                "output": {"wrap_func_args": False},
            },
        )


__all__ = [
    "TransformProfile",
    "TRANSFORM_PROFILES",
    "ESMODULES_TARGET",
    "MINIFY_COMPRESS_DEFAULTS",
    "ShebangStage",
    "MinifyStage",
    "SizeReportStage",
    "StageAssembler",
]
