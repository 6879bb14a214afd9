"""
Options Schema - Invocation and Build Options

InvocationOptions mirror what a caller (CLI, test harness) hands in.
They can be incomplete: formats are a comma-separated string, entries
may be globs, output may be missing.

BuildOptions are the fully resolved, immutable form the Planner works on.
"""
from pathlib import Path
from typing import List, Optional, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field

from bundler import config


class Format(str, Enum):
    """Output module packaging conventions"""
    CJS = "cjs"
    ES = "es"
    UMD = "umd"
    MODERN = "modern"

    @property
    def is_modern(self) -> bool:
        return self is Format.MODERN

    @property
    def module_format(self) -> str:
        """Format string handed to the engine (modern is emitted as ES modules)"""
        return "es" if self is Format.MODERN else self.value


FORMAT_ALIASES = {
    "esm": Format.ES,
    "es": Format.ES,
    "cjs": Format.CJS,
    "umd": Format.UMD,
    "modern": Format.MODERN,
}


class Target(str, Enum):
    """Target environment"""
    BROWSER = "browser"
    NODE = "node"


TARGET_ALIASES = {
    "browser": Target.BROWSER,
    "web": Target.BROWSER,
    "node": Target.NODE,
}


class InvocationOptions(BaseModel):
    """Raw options for one invocation, before resolution"""
    cwd: str = Field(".", description="Working directory")
    entries: List[str] = Field(default_factory=list, description="Entry files or glob patterns")
    output: Optional[str] = Field(None, description="Output file or directory")
    format: str = Field(config.DEFAULT_FORMATS, description="Comma-separated list of formats")
    target: str = Field(Target.BROWSER.value, description="browser or node")
    name: Optional[str] = Field(None, description="UMD global / build name")

    external: Optional[str] = Field(None, description="'none' or comma-separated module names")
    globals: Optional[str] = Field(None, description="'none' or module=global pairs")
    define: Optional[str] = Field(None, description="name=value pairs")
    alias: Optional[str] = Field(None, description="name=path pairs")

    compress: Optional[bool] = Field(None)
    sourcemap: Optional[bool] = Field(None)
    watch: bool = Field(False)
    raw: bool = Field(False, description="Report exact byte counts")
    strict: bool = Field(False)

    jsx: Optional[str] = Field(None, description="JSX pragma")
    jsx_fragment: Optional[str] = Field(None, description="JSX fragment pragma")
    tsconfig: Optional[str] = Field(None)
    css_modules: Optional[Union[bool, str]] = Field(None)
    name_cache: Optional[bool] = Field(None, description="Force minifier identity caching on/off")


class BuildOptions(BaseModel):
    """Fully resolved options. Constructed once per invocation, never mutated."""
    model_config = ConfigDict(frozen=True)

    cwd: Path
    entries: List[Path] = Field(..., description="Deduplicated absolute entry paths, primary first")
    output: Path = Field(..., description="Resolved main output file")
    formats: List[Format] = Field(..., description="Deduplicated, cjs first")
    name: str = Field(..., description="Build name (UMD global, shebang key)")
    target: Target = Field(Target.BROWSER)

    external: Optional[str] = None
    globals: Optional[str] = None
    define: Optional[str] = None
    alias: Optional[str] = None

    compress: bool = True
    sourcemap: bool = True
    watch: bool = False
    raw: bool = False
    strict: bool = False

    jsx: str = "h"
    jsx_fragment: str = "Fragment"
    tsconfig: Optional[str] = None
    css_modules: Optional[Union[bool, str]] = None
    name_cache: bool = False

    @property
    def multiple_entries(self) -> bool:
        return len(self.entries) > 1

    @property
    def primary_entry(self) -> Path:
        return self.entries[0]
