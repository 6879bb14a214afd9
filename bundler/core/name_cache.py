"""
Minifier Identity Cache

Keeps minified identifier names stable across builds. The cache lives
in a JSON file next to the manifest (mangle.json by default). It is
re-read before every minification so external edits are honoured, and
written back only by the primary step of a plan.

A cache file may carry a "minify" object with extra minify options.
"""
import copy
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, Field

from bundler import config
from bundler.errors import CacheIOError

logger = logging.getLogger(__name__)


class NameCache(BaseModel):
    """Identifier mapping plus the minify options declared inside the cache file"""
    mapping: Dict[str, Any] = Field(default_factory=dict, description="Minifier name cache (vars/props)")
    minify: Dict[str, Any] = Field(default_factory=dict, description="Options declared by the cache file")

    @property
    def is_empty(self) -> bool:
        return not self.mapping

    def to_json(self) -> str:
        data = dict(self.mapping)
        if self.minify:
            data["minify"] = self.minify
        return json.dumps(data, indent=2)


class CacheLoadResult(BaseModel):
    """Outcome of load_or_default: a usable cache plus an optional diagnostic"""
    cache: NameCache = Field(default_factory=NameCache)
    error: Optional[str] = Field(None, description="Why the file could not be used, if it couldn't")
    found: bool = Field(False)


def load_or_default(path: Path) -> CacheLoadResult:
    """
    Read a cache file. Never raises.

    A missing, unreadable or corrupt file gives an empty cache and the
    reason in `error`.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return CacheLoadResult(error=f"{path} does not exist")
    except OSError as e:
        return CacheLoadResult(error=f"Unable to read {path}: {e}")

    try:
        data = json.loads(text)
    except ValueError as e:
        return CacheLoadResult(error=f"Corrupt name cache {path}: {e}", found=True)

    if not isinstance(data, dict):
        return CacheLoadResult(error=f"Corrupt name cache {path}: expected an object", found=True)

    minify = data.pop("minify", None)
    cache = NameCache(mapping=data, minify=minify if isinstance(minify, dict) else {})
    return CacheLoadResult(cache=cache, found=True)


def merge_minify_options(explicit: Dict[str, Any], cache_declared: Dict[str, Any]) -> Dict[str, Any]:
    """
    Shallow merge: keys set explicitly (manifest) win, the cache file
    fills in the rest
    """
    merged = copy.deepcopy(cache_declared)
    merged.update(copy.deepcopy(explicit))
    return merged


class NameCacheStore:
    """
    Location and persistence of the name cache for one working directory

    Writes are serialized per store; only primary steps call save().
    """

    def __init__(self, cwd: Path, raw_minify: Union[str, Dict[str, Any], None] = None, enabled: bool = False):
        """
        Args:
            cwd: Working directory
            raw_minify: Manifest "minify"/"mangle" value. A string names the cache file.
            enabled: Whether caching is on for this invocation
        """
        self.cwd = Path(cwd)
        self.enabled = enabled
        self.raw_minify = copy.deepcopy(raw_minify)
        if isinstance(raw_minify, str):
            self.path = (self.cwd / raw_minify).resolve()
            self.explicit_options: Dict[str, Any] = {}
        else:
            self.path = self.cwd / config.NAME_CACHE_FILE
            self.explicit_options = dict(raw_minify or {})
        self._write_lock = threading.Lock()

    def matches(self, cwd: Path, raw_minify: Union[str, Dict[str, Any], None], enabled: bool) -> bool:
        """Whether this store is the one an invocation with these settings needs"""
        return self.cwd == Path(cwd) and self.raw_minify == raw_minify and self.enabled == enabled

    def load(self) -> CacheLoadResult:
        result = load_or_default(self.path)
        if result.error and (result.found or self.enabled):
            logger.warning(f"[NameCache] {result.error}; continuing with an empty cache")
        return result

    def save(self, cache: NameCache) -> bool:
        """
        Write the cache back to disk

        Returns:
            True if written. Failures are logged, never raised.
        """
        if not self.enabled:
            return False
        with self._write_lock:
            try:
                self._write(cache)
            except CacheIOError as e:
                logger.error(f"[NameCache] {e}")
                return False
        logger.info(f"[NameCache] Wrote {self.path}")
        return True

    def _write(self, cache: NameCache) -> None:
        # readers never see a half-written file: write aside, then swap in
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(cache.to_json())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise CacheIOError(f"Unable to write name cache {self.path}: {e}") from e


__all__ = ["NameCache", "CacheLoadResult", "load_or_default", "merge_minify_options", "NameCacheStore"]
