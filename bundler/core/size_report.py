"""
Size Reporter

Formats raw and compressed sizes of emitted assets for the build report.
"""
import gzip
from pathlib import Path
from typing import Iterable, List, Optional

from bundler.schemas import EmittedAsset

# below this many bytes, exact byte counts read better than rounded units
RAW_THRESHOLD = 5000
PAD_WIDTH = 13

_UNITS = ["B", "kB", "MB", "GB", "TB"]


def pretty_bytes(size: int) -> str:
    """Decimal units, three significant digits: 1234 -> '1.23 kB'"""
    if size < 1000:
        return f"{size} B"
    value = float(size)
    unit = 0
    while round(value, 3 - len(str(int(value)))) >= 1000 and unit < len(_UNITS) - 1:
        value /= 1000
        unit += 1
    text = f"{value:.3g}"
    return f"{text} {_UNITS[unit]}"


def gzip_size(code: str) -> int:
    return len(gzip.compress(code.encode("utf-8"), compresslevel=9, mtime=0))


def format_size(size: int, filename: str, kind: Optional[str], raw: bool) -> str:
    pretty = f"{size} B" if raw else pretty_bytes(size)
    indent = " " * max(PAD_WIDTH - len(pretty), 0)
    label = Path(filename).name
    if kind:
        label = f"{label}.{kind}"
    return f"{indent}{pretty}: {label}"


def get_size_info(code: str, filename: str, raw: bool = False) -> str:
    """Raw and gzip size lines for one emitted file"""
    raw = raw or len(code) < RAW_THRESHOLD
    return "\n".join([
        format_size(len(code.encode("utf-8")), filename, None, raw),
        format_size(gzip_size(code), filename, "gz", raw),
    ])


def size_report_text(assets: Iterable[EmittedAsset], raw: bool = False) -> str:
    """Report for a build: only assets that produced code are measured"""
    lines: List[str] = [
        get_size_info(asset.code, asset.file_name, raw)
        for asset in assets
        if asset.code
    ]
    return "\n".join(lines)


def format_build_report(name: str, target_dir: str, step_texts: List[str]) -> str:
    """Aggregate the per-step reports of a batch build"""
    banner = f'Build "{name}" to {target_dir}:'
    lines = [line for text in step_texts for line in text.split("\n")]
    return f"{banner}\n   " + "\n   ".join(lines)


__all__ = [
    "pretty_bytes",
    "gzip_size",
    "format_size",
    "get_size_info",
    "size_report_text",
    "format_build_report",
    "RAW_THRESHOLD",
]
