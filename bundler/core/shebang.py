"""
Shebang Table

An executable shebang line has to be removed before transformation (it
would otherwise end up in the middle of the bundle) and put back as the
first line of every output file of the same build.
"""
import re
import threading
from typing import Dict, Optional

SHEBANG_PATTERN = re.compile(r"^#![^\n]*")


class ShebangTable:
    """Build name -> stripped shebang line. One instance per pipeline."""

    def __init__(self):
        self._lock = threading.Lock()
        self._lines: Dict[str, str] = {}

    def strip(self, build_name: str, code: str) -> str:
        """
        Remove a leading shebang from `code`, remembering it under `build_name`

        Source without one forgets any line remembered from an earlier
        build, so a rebuild after the shebang was deleted drops it.
        """
        match = SHEBANG_PATTERN.match(code)
        with self._lock:
            if not match:
                self._lines.pop(build_name, None)
                return code
            self._lines[build_name] = match.group(0)
        return code[match.end():]

    def get(self, build_name: str) -> Optional[str]:
        with self._lock:
            return self._lines.get(build_name)

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def __contains__(self, build_name: str) -> bool:
        with self._lock:
            return build_name in self._lines


__all__ = ["ShebangTable", "SHEBANG_PATTERN"]
