"""
External Classifier

Decides, per imported module specifier, whether it is bundled or left
as an external reference. Classification depends only on the build
options and the manifest, so every step of a plan sees the same answer
for the same module specifier.
"""
import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional

from bundler import config
from bundler.schemas import BuildOptions, ManifestInfo
from .options import parse_mapping_argument

logger = logging.getLogger(__name__)

BUNDLE_EVERYTHING = "none"

# valid JS identifiers are usually library globals
_GLOBAL_IDENTIFIER = re.compile(r"^[a-z_$][a-z0-9_$]*$")


def get_externals(
    external: Optional[str],
    dependencies: Optional[Dict[str, str]] = None,
    peer_dependencies: Optional[Dict[str, str]] = None
) -> List[str]:
    """
    Module prefixes treated as external

    - "none": nothing (bundle everything)
    - explicit list: built-ins + peerDependencies + the list
    - default: built-ins + peerDependencies + dependencies
    """
    if external == BUNDLE_EVERYTHING:
        return []

    names = list(config.BUILTIN_EXTERNALS) + list(peer_dependencies or {})
    if external:
        names += [name.strip() for name in external.split(",") if name.strip()]
    else:
        names += list(dependencies or {})

    # dedupe, keep order
    return list(dict.fromkeys(names))


def matches_external(specifier: str, names: List[str]) -> bool:
    """True if the specifier is, or is nested under, one of the names"""
    for name in names:
        if specifier == name or specifier.startswith(name + "/"):
            return True
    return False


def infer_globals(externals: List[str], globals_option: Optional[str] = None) -> Dict[str, str]:
    """
    Global variable names for UMD output

    Externals that are plain identifiers map to a global of the same
    name; explicit mappings take precedence; "none" disables globals.
    """
    if globals_option == BUNDLE_EVERYTHING:
        return {}

    globals_map = {name: name for name in externals if _GLOBAL_IDENTIFIER.match(name)}
    if globals_option:
        globals_map.update(parse_mapping_argument(globals_option))
    return globals_map


class ExternalClassifier:
    """
    Classifies module specifiers for one plan

    Sibling entries of a multi-entry build are always external so they
    are not inlined into each other; the bare "." specifier refers to
    the main output in that case.
    """

    def __init__(self, options: BuildOptions, manifest: ManifestInfo):
        self.options = options
        self.externals = get_externals(
            options.external,
            manifest.dependencies,
            manifest.peer_dependencies,
        )
        self.globals = infer_globals(self.externals, options.globals)
        self._entries = {str(entry) for entry in options.entries}

        logger.info(f"[Externals] {len(self.externals)} external modules: {', '.join(self.externals) or '(none)'}")

    def is_external(self, specifier: str) -> bool:
        """Plan-wide decision for a module specifier"""
        if specifier == config.ASYNC_HELPERS_MODULE:
            return False
        if self.options.multiple_entries and specifier == ".":
            return True
        return matches_external(specifier, self.externals)

    def predicate_for(self, entry: Path) -> Callable[[str], bool]:
        """External test for the step building `entry`"""
        siblings = self._entries - {str(entry)}

        def external(specifier: str) -> bool:
            if specifier in siblings:
                return True
            return self.is_external(specifier)

        return external

    def external_names_for(self, entry: Path) -> List[str]:
        """The external prefixes for one step, sibling entries and "." included"""
        siblings = [str(e) for e in self.options.entries if e != entry]
        names = self.externals + siblings
        if self.options.multiple_entries:
            names.append(".")
        return names

    def never_external(self) -> List[str]:
        """Modules bundled even when they sit under an external prefix"""
        return [config.ASYNC_HELPERS_MODULE]


__all__ = [
    "BUNDLE_EVERYTHING",
    "get_externals",
    "matches_external",
    "infer_globals",
    "ExternalClassifier",
]
