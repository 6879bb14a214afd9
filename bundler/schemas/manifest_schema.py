"""
Manifest Schema - package.json fields the planner reads

Read-only input. Unknown fields are ignored.
"""
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ManifestInfo(BaseModel):
    """Package metadata relevant to bundling"""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: Optional[str] = None
    amd_name: Optional[str] = Field(None, alias="amdName")

    source: Optional[Union[str, List[str]]] = None
    main: Optional[str] = None
    module: Optional[str] = None
    jsnext_main: Optional[str] = Field(None, alias="jsnext:main")
    cjs_main: Optional[str] = Field(None, alias="cjs:main")
    umd_main: Optional[str] = Field(None, alias="umd:main")
    esmodule: Optional[str] = None
    syntax: Optional[Dict[str, Any]] = None

    dependencies: Dict[str, str] = Field(default_factory=dict)
    peer_dependencies: Dict[str, str] = Field(default_factory=dict, alias="peerDependencies")

    # "minify" (current) or "mangle" (legacy): options dict, or path to a cache file
    minify: Optional[Union[str, Dict[str, Any]]] = None
    mangle: Optional[Union[str, Dict[str, Any]]] = None

    @field_validator("dependencies", "peer_dependencies", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return value or {}

    @property
    def sources(self) -> List[str]:
        if not self.source:
            return []
        return [self.source] if isinstance(self.source, str) else list(self.source)

    @property
    def modern_main(self) -> Optional[str]:
        """ESM-targets declaration used for the modern output"""
        if self.syntax and self.syntax.get("esmodules"):
            return self.syntax["esmodules"]
        return self.esmodule

    @property
    def raw_minify(self) -> Union[str, Dict[str, Any]]:
        return self.minify or self.mangle or {}
