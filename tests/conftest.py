"""
Shared fixtures: temporary packages and a deterministic in-process engine

FakeEngine honours the engine contract without any JavaScript tooling:
it reads the entry, runs the stage hooks, renames declared identifiers
through the name cache when a terser stage is present, and emits one
asset per step.
"""
import json
import re
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from bundler.core.manifest import load_manifest
from bundler.core.name_cache import NameCacheStore
from bundler.core.options import resolve_build_options
from bundler.core.planner import Planner
from bundler.core.shebang import ShebangTable
from bundler.errors import ExternalToolError
from bundler.schemas import BuildPlan, EmittedAsset, InputConfig, InvocationOptions, OutputConfig
from bundler.tools.engine import Bundle, Engine, run_build_start, run_transform

_DECLARATION = re.compile(r"\b(?:var|let|const|function)\s+([A-Za-z_$][\w$]*)")
_SHORT_NAMES = "abcdefghijklmnopqrstuvwxyz"


def mangle(code: str, name_cache: Optional[Dict[str, Any]]) -> str:
    """Rename declared identifiers, reusing and extending the cache's assignments"""
    if name_cache is None:
        name_cache = {}
    props = name_cache.setdefault("vars", {}).setdefault("props", {})
    used = set(props.values())

    for name in dict.fromkeys(_DECLARATION.findall(code)):
        key = f"${name}"
        if key not in props:
            props[key] = next(short for short in _SHORT_NAMES if short not in used)
            used.add(props[key])
        code = re.sub(rf"(?<![\w$]){re.escape(name)}(?![\w$])", props[key], code)
    return code


class FakeBundle(Bundle):

    def __init__(self, engine: "FakeEngine", input_config: InputConfig, code: str, cache: Any = None):
        super().__init__(input_config, cache=cache)
        self.engine = engine
        self.code = code

    def generate(self, output_config: OutputConfig) -> Dict[str, EmittedAsset]:
        code = self.code
        minify = self.input_config.get_stage("terser")
        if minify is not None:
            code = mangle(code, minify.options.get("name_cache"))

        file_name = output_config.file.name
        asset = EmittedAsset(
            file_name=file_name,
            code=code,
            map=json.dumps({"version": 3, "file": file_name}),
            is_entry=True,
        )
        # the incremental cache is the list of step inputs built so far
        self.cache = (self.cache or []) + [str(self.input_config.input)]
        return {file_name: asset}


class FakeEngine(Engine):
    """
    Args:
        fail_times: Number of builds that fail before builds succeed
        fail_inputs: Entry file names whose builds always fail
    """

    def __init__(self, fail_times: int = 0, fail_inputs: Optional[List[str]] = None):
        self.fail_times = fail_times
        self.fail_inputs = set(fail_inputs or [])
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def bundle(self, input_config: InputConfig, cache: Any = None) -> Bundle:
        with self._lock:
            self.calls.append({
                "input": input_config.input,
                "cache": cache,
                "stages": input_config.stage_names(),
            })
            failing = self.fail_times > 0
            if failing:
                self.fail_times -= 1

        if failing or input_config.input.name in self.fail_inputs:
            raise ExternalToolError("Unexpected token", stage="babel", diagnostic=f"{input_config.input}:1:1")

        run_build_start(input_config.stages)
        source = input_config.input.read_text(encoding="utf-8")
        code = run_transform(input_config.stages, source, str(input_config.input))
        previous = cache.cache if isinstance(cache, Bundle) else cache
        return FakeBundle(self, input_config, code, cache=previous)


def write_package(root: Path, manifest: Optional[Dict[str, Any]] = None, files: Optional[Dict[str, str]] = None) -> Path:
    """Lay out a package: package.json (unless manifest is None) plus source files"""
    root.mkdir(parents=True, exist_ok=True)
    if manifest is not None:
        (root / "package.json").write_text(json.dumps(manifest), encoding="utf-8")
    for name, content in (files or {}).items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def make_plan(package: Path, shebangs: Optional[ShebangTable] = None, **kwargs) -> BuildPlan:
    """Plan a package the way BundlePipeline.prepare does"""
    manifest, has_manifest = load_manifest(package)
    options = resolve_build_options(InvocationOptions(cwd=str(package), **kwargs), manifest, has_manifest)
    store = NameCacheStore(options.cwd, manifest.raw_minify, enabled=options.name_cache)
    return Planner(shebangs=shebangs or ShebangTable(), name_cache_store=store).plan(options, manifest)


@pytest.fixture
def temp_dir():
    """Create temporary directory for packages"""
    temp = Path(tempfile.mkdtemp())
    yield temp
    if temp.exists():
        shutil.rmtree(temp)


@pytest.fixture
def demo_package(temp_dir):
    """A package named demo with a single source entry"""
    return write_package(
        temp_dir / "demo",
        manifest={"name": "demo", "dependencies": {"react": "^18.0.0"}},
        files={"src/index.js": "var answer = 42;\nexport default answer;\n"},
    )


@pytest.fixture
def fake_engine():
    return FakeEngine()
