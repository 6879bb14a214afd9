"""
Error types shared by every pipeline component
"""
from typing import Optional


class BundlerError(Exception):
    """Base class for all bundler failures"""
    pass


class ConfigurationError(BundlerError):
    """Raised when options and manifest cannot produce a valid build plan"""
    pass


class ExternalToolError(BundlerError):
    """Raised when a pipeline stage (or the engine running it) fails"""

    def __init__(self, message: str, stage: Optional[str] = None, diagnostic: Optional[str] = None):
        self.stage = stage
        self.diagnostic = diagnostic
        detail = message
        if stage:
            detail = f"[{stage}] {detail}"
        if diagnostic:
            detail = f"{detail}\n{diagnostic}"
        super().__init__(detail)


class CacheIOError(BundlerError, OSError):
    """Raised when the minifier identity cache cannot be written"""
    pass


__all__ = ["BundlerError", "ConfigurationError", "ExternalToolError", "CacheIOError"]
