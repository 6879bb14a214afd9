"""
Path & Naming Resolver

Responsibilities:
- Resolve the entry list (explicit entries, or manifest/convention fallbacks)
- Resolve the main output file
- Derive the per-format output file for each (entry, format) pair

All returned paths are absolute.
"""
import glob
import logging
import re
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from bundler import config
from bundler.schemas import BuildOptions, Format, ManifestInfo
from bundler.errors import ConfigurationError
from .manifest import remove_scope

logger = logging.getLogger(__name__)

_KNOWN_EXTENSION = re.compile(r"\.[a-z]+$")
_FORMAT_SUFFIX = re.compile(r"(\.(umd|cjs|es|m))?\.(mjs|[tj]sx?)$")
_INDEX_ENTRY = re.compile(r"[\\/]index(\.(umd|cjs|es|m))?\.(mjs|[tj]sx?)$")
_GLOB_CHARS = re.compile(r"[*?\[]")

# Extension priority for conventional entries
_ENTRY_EXTENSIONS = [".ts", ".tsx", ".js"]

DEFAULT_FILENAMES = {
    Format.CJS: "x.js",
    Format.ES: "x.esm.js",
    Format.UMD: "x.umd.js",
    Format.MODERN: "x.modern.js",
}


def expand_pattern(pattern: str, cwd: Path) -> List[Path]:
    """Expand one entry candidate through filesystem pattern matching"""
    path = Path(pattern)
    if not path.is_absolute():
        path = Path(cwd) / path

    if _GLOB_CHARS.search(str(pattern)):
        return [Path(match) for match in sorted(glob.glob(str(path), recursive=True))]
    return [path] if path.exists() else []


def js_or_ts(cwd: Path, filename: str) -> Path:
    """Pick the first existing of filename.ts / .tsx / .js (.js if none exists)"""
    for extension in _ENTRY_EXTENSIONS:
        candidate = Path(cwd) / f"{filename}{extension}"
        if candidate.is_file():
            return candidate
    return Path(cwd) / f"{filename}.js"


def get_input(entries: Sequence[str], cwd: Path, manifest: ManifestInfo) -> List[Path]:
    """
    Resolve input files

    Candidates in order: explicit entries, manifest source field(s),
    src/index, index, manifest module field. The first candidate group
    that matches anything wins.

    Raises:
        ConfigurationError: If no candidate resolves to a file
    """
    cwd = Path(cwd)
    if entries:
        groups = [list(entries)]
    else:
        groups = []
        if manifest.sources:
            groups.append(manifest.sources)
        if (cwd / "src").is_dir():
            groups.append([str(js_or_ts(cwd, "src/index"))])
        groups.append([str(js_or_ts(cwd, "index"))])
        if manifest.module:
            groups.append([manifest.module])

    for group in groups:
        matched = [path for pattern in group for path in expand_pattern(pattern, cwd)]
        if matched:
            return matched

    tried = ", ".join(pattern for group in groups for pattern in group)
    raise ConfigurationError(f"No entry module found (tried: {tried})")


def get_output(cwd: Path, output: Optional[str], pkg_main: Optional[str], pkg_name: str) -> Path:
    """Resolve the main output file, synthesizing a filename for directory targets"""
    main = (Path(cwd) / (output or pkg_main or config.DEFAULT_OUTPUT_DIR)).resolve()
    if not _KNOWN_EXTENSION.search(str(main)) or main.is_dir():
        filename = remove_scope(pkg_name or "")
        if not filename:
            raise ConfigurationError(f"Cannot derive an output filename for {main}: package name is empty")
        main = main / f"{filename}.js"
    return main


def get_entries(input_files: Iterable[Path], cwd: Path) -> List[Path]:
    """Absolute, deduplicated entries; directories are rewritten to their index.js"""
    entries: List[Path] = []
    for file in input_files:
        path = (Path(cwd) / file).resolve()
        if path.is_dir():
            path = path / "index.js"
        if path not in entries:
            entries.append(path)
    return entries


def replace_name(template: str, main_no_extension: str) -> Path:
    """Keep everything after the first dot of the template's basename"""
    suffix = re.sub(r"^[^.]+", "", Path(template).name)
    return Path(main_no_extension + suffix)


def format_filenames(manifest: ManifestInfo) -> Dict[Format, str]:
    """Filename templates per format, honouring manifest overrides"""
    module = manifest.module if manifest.module and "src/" not in manifest.module else None
    return {
        Format.ES: module or manifest.jsnext_main or DEFAULT_FILENAMES[Format.ES],
        Format.MODERN: manifest.modern_main or DEFAULT_FILENAMES[Format.MODERN],
        Format.CJS: manifest.cjs_main or DEFAULT_FILENAMES[Format.CJS],
        Format.UMD: manifest.umd_main or DEFAULT_FILENAMES[Format.UMD],
    }


def output_file_for(options: BuildOptions, manifest: ManifestInfo, entry: Path, format: Format) -> Path:
    """
    Output file for one (entry, format) pair

    With multiple entries, non-index entries are named after themselves
    so they don't collide with the shared main filename.
    """
    main = options.output
    if options.multiple_entries:
        name = main if _INDEX_ENTRY.search(str(entry)) else entry
        main = main.parent / Path(name).name
    main_no_extension = _FORMAT_SUFFIX.sub("", str(main))

    return replace_name(format_filenames(manifest)[format], main_no_extension)


__all__ = [
    "expand_pattern",
    "js_or_ts",
    "get_input",
    "get_output",
    "get_entries",
    "replace_name",
    "format_filenames",
    "output_file_for",
    "DEFAULT_FILENAMES",
]
