"""
Manifest - package.json loading and build naming

The manifest is read once per invocation and never written.
"""
import json
import logging
import re
from pathlib import Path
from typing import Optional, Tuple

from bundler.schemas import ManifestInfo
from bundler.errors import ConfigurationError

logger = logging.getLogger(__name__)

MANIFEST_FILE = "package.json"

# leading non-letters, non-identifier characters, trailing non-alphanumerics
_INVALID_ES3_IDENT = re.compile(r"((^[^a-zA-Z]+)|[^\w.-])|([^a-zA-Z0-9]+$)")


def load_manifest(cwd: Path) -> Tuple[ManifestInfo, bool]:
    """
    Load package.json from the working directory

    Returns:
        (manifest, has_manifest). A missing file gives an empty manifest.

    Raises:
        ConfigurationError: If package.json exists but is not valid JSON
    """
    manifest_path = Path(cwd) / MANIFEST_FILE
    if not manifest_path.exists():
        logger.info(f"[Manifest] No {MANIFEST_FILE} in {cwd}, using defaults")
        return ManifestInfo(), False

    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Unable to read {manifest_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{manifest_path} must contain a JSON object")

    return ManifestInfo.model_validate(data), True


def remove_scope(name: str) -> str:
    """'@scope/pkg' -> 'pkg'"""
    return re.sub(r"^@.*/", "", name)


def safe_variable_name(name: str) -> str:
    """Turn a package name into a camelCased identifier usable as a UMD global"""
    normalized = remove_scope(name).lower()
    identifier = _INVALID_ES3_IDENT.sub("", normalized)
    parts = [part for part in re.split(r"[-_.\s]+", identifier) if part]
    if not parts:
        return ""
    return parts[0] + "".join(part[:1].upper() + part[1:] for part in parts[1:])


def get_name(
    cwd: Path,
    manifest: ManifestInfo,
    has_manifest: bool,
    name: Optional[str] = None
) -> Tuple[str, str]:
    """
    Work out the build name and the package name

    Returns:
        (final_name, package_name)
    """
    pkg_name = manifest.name
    if not pkg_name:
        pkg_name = Path(cwd).name
        if has_manifest:
            logger.warning(f"[Manifest] Missing name field in {MANIFEST_FILE}, assuming \"{pkg_name}\"")

    final_name = name or manifest.amd_name or safe_variable_name(pkg_name)
    return final_name, pkg_name


__all__ = ["load_manifest", "remove_scope", "safe_variable_name", "get_name", "MANIFEST_FILE"]
