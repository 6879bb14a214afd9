"""
Option normalization

Turns raw invocation options plus the manifest into immutable BuildOptions,
and parses the `name=value` style arguments (aliases, defines, globals).
"""
import json
import logging
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from bundler import config
from bundler.schemas import (
    BuildOptions,
    Format,
    FORMAT_ALIASES,
    InvocationOptions,
    ManifestInfo,
    TARGET_ALIASES,
)
from bundler.errors import ConfigurationError
from .manifest import get_name
from .paths import get_entries, get_input, get_output

logger = logging.getLogger(__name__)


def parse_mapping_argument(
    value: str,
    process: Optional[Callable[[str, str], Tuple[str, str]]] = None
) -> Dict[str, str]:
    """
    Parse "a=b,c=d" into {"a": "b", "c": "d"}

    Args:
        value: Comma-separated key=value pairs
        process: Optional (value, key) -> (value, key) rewrite

    Raises:
        ConfigurationError: If a pair has no '='
    """
    mapping: Dict[str, str] = {}
    for pair in value.split(","):
        if not pair.strip():
            continue
        if "=" not in pair:
            raise ConfigurationError(f"Expected name=value, got '{pair}'")
        key, item = pair.split("=", 1)
        key, item = key.strip(), item.strip()
        if process:
            item, key = process(item, key)
        mapping[key] = item
    return mapping


def to_replacement_expression(value: str, name: str) -> Tuple[str, str]:
    """
    Turn a define value into the expression substituted in the code

    --define A="1"           -> string literal "1"
    --define @assign=Object.assign -> expression replaced by expression
    --define A=1,B=true      -> literal as written
    --define A=foo           -> string literal "foo"
    """
    quoted = re.match(r"^(['\"])(.+)\1$", value)
    if quoted:
        return json.dumps(quoted.group(2)), name
    if name.startswith("@"):
        return value, name[1:]
    if re.match(r"^(true|false|\d+)$", value, re.IGNORECASE):
        return value, name
    return json.dumps(value), name


def parse_alias_argument(value: str, cwd: Optional[Path] = None) -> List[Dict[str, str]]:
    """
    Parse "react=preact/compat,utils=./src/utils" into alias entries

    Relative replacements are resolved against the working directory.
    """
    aliases = []
    for find, replacement in parse_mapping_argument(value).items():
        if cwd is not None and replacement.startswith("."):
            replacement = str((Path(cwd) / replacement).resolve())
        aliases.append({"find": find, "replacement": replacement})
    return aliases


def normalize_minify_options(minify_options: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize user minify options in place (and return them)

    - a boolean "mangle" is left alone
    - top-level "properties" overrides mangle.properties, including False
    - legacy top-level "regex"/"reserved" move into mangle.properties
    - mangle.properties.reserved is always a list
    """
    if isinstance(minify_options.get("mangle"), bool):
        return minify_options

    mangle = minify_options.get("mangle") or {}
    minify_options["mangle"] = mangle
    properties = mangle.get("properties")

    if minify_options.get("properties") is not None:
        top_level = minify_options["properties"]
        if top_level:
            properties = {**(properties if isinstance(properties, dict) else {}), **top_level}
        else:
            properties = top_level
        mangle["properties"] = properties

    if minify_options.get("regex") or minify_options.get("reserved"):
        if not properties:
            properties = {}
            mangle["properties"] = properties
        properties["regex"] = properties.get("regex") or minify_options.get("regex")
        properties["reserved"] = properties.get("reserved") or minify_options.get("reserved")

    if isinstance(properties, dict):
        reserved = properties.get("reserved") or []
        properties["reserved"] = list(reserved) if isinstance(reserved, (list, tuple)) else [reserved]

    return minify_options


def parse_formats(value: str) -> List[Format]:
    """
    Parse a comma-separated format list

    Duplicates (including esm/es) are dropped keeping the first occurrence,
    cjs is moved to the front, the rest keep their relative order.

    Raises:
        ConfigurationError: On an unknown format or an empty list
    """
    formats: List[Format] = []
    for raw in value.split(","):
        raw = raw.strip().lower()
        if not raw:
            continue
        if raw not in FORMAT_ALIASES:
            known = ", ".join(sorted(FORMAT_ALIASES))
            raise ConfigurationError(f"Unknown format '{raw}'. Known formats: {known}")
        format = FORMAT_ALIASES[raw]
        if format not in formats:
            formats.append(format)

    if not formats:
        raise ConfigurationError("No output format requested")

    # always compile cjs first if it's there
    return sorted(formats, key=lambda f: 0 if f is Format.CJS else 1)


def resolve_build_options(
    invocation: InvocationOptions,
    manifest: ManifestInfo,
    has_manifest: bool = True
) -> BuildOptions:
    """
    Resolve raw invocation options into BuildOptions

    Raises:
        ConfigurationError: If entries, output or formats cannot be resolved
    """
    cwd = Path(invocation.cwd).resolve()

    final_name, pkg_name = get_name(cwd, manifest, has_manifest, invocation.name)

    input_files = get_input(invocation.entries, cwd, manifest)
    entries = get_entries(input_files, cwd)
    output = get_output(cwd, invocation.output, manifest.main, pkg_name)

    target_key = (invocation.target or "browser").lower()
    if target_key not in TARGET_ALIASES:
        raise ConfigurationError(f"Unknown target '{invocation.target}'")

    # caching is on when the manifest names a cache file, or the default one exists
    name_cache = invocation.name_cache
    if name_cache is None:
        name_cache = isinstance(manifest.raw_minify, str) or (cwd / config.NAME_CACHE_FILE).is_file()

    options = BuildOptions(
        cwd=cwd,
        entries=entries,
        output=output,
        formats=parse_formats(invocation.format),
        name=final_name,
        target=TARGET_ALIASES[target_key],
        external=invocation.external,
        globals=invocation.globals,
        define=invocation.define,
        alias=invocation.alias,
        compress=invocation.compress is not False,
        sourcemap=invocation.sourcemap is not False,
        watch=invocation.watch,
        raw=invocation.raw,
        strict=invocation.strict,
        jsx=invocation.jsx or "h",
        jsx_fragment=invocation.jsx_fragment or "Fragment",
        tsconfig=invocation.tsconfig,
        css_modules=invocation.css_modules,
        name_cache=name_cache,
    )

    logger.info(
        f"[Options] {options.name}: {len(options.entries)} entries, "
        f"formats={','.join(f.value for f in options.formats)}, output={options.output}"
    )
    return options


__all__ = [
    "parse_mapping_argument",
    "to_replacement_expression",
    "parse_alias_argument",
    "normalize_minify_options",
    "parse_formats",
    "resolve_build_options",
]
