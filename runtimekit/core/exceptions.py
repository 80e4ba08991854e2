"""
Centralized exception hierarchy for RuntimeKit.

Resolution and installation errors abort the run. Cache service errors are
split into a fatal validation class and non-fatal classes that callers log
and treat as a cache miss.
"""

from typing import Iterable


# ============================================================================
# Base Exceptions
# ============================================================================


class RuntimeKitError(Exception):
    """Base exception for all RuntimeKit errors."""

    pass


class InvalidInputError(RuntimeKitError):
    """Raised when a setup input is missing or malformed."""

    pass


# ============================================================================
# Resolution Exceptions
# ============================================================================


class ResolutionError(RuntimeKitError):
    """Base exception for version resolution errors."""

    pass


class UnknownEngineError(ResolutionError):
    """Raised when no catalog exists for an engine on a platform."""

    def __init__(self, engine: str, platform: str):
        self.engine = engine
        self.platform = platform
        super().__init__(f"Unknown engine {engine} on {platform}")


class UnknownVersionError(ResolutionError):
    """Raised when no catalog version matches the requested pattern."""

    def __init__(
        self, engine: str, version: str, platform: str, available: Iterable[str]
    ):
        self.engine = engine
        self.version = version
        self.platform = platform
        self.available = list(available)
        super().__init__(
            f"Unknown version {version} for {engine} on {platform}\n"
            f"  available versions for {engine} on {platform}: "
            f"{', '.join(self.available)}"
        )


class ArchitectureUnsupportedError(ResolutionError):
    """Raised when an installer cannot provide the requested architecture."""

    def __init__(self, architecture: str, detail: str = ""):
        self.architecture = architecture
        msg = f"Unsupported architecture: {architecture}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


# ============================================================================
# Installation Exceptions
# ============================================================================


class InstallError(RuntimeKitError):
    """Base exception for runtime installation errors."""

    pass


class DownloadFailedError(InstallError):
    """Raised when the runtime archive cannot be fetched."""

    pass


class ExtractFailedError(InstallError):
    """Raised when the runtime archive cannot be unpacked into place."""

    pass


# ============================================================================
# Cache Service Exceptions
# ============================================================================


class CacheError(RuntimeKitError):
    """Base exception for dependency cache service errors."""

    pass


class CacheValidationError(CacheError):
    """Caller-side misuse of the cache service (malformed key or paths). Fatal."""

    pass


class CacheTransientError(CacheError):
    """Cache backend failure. Logged and treated as a cache miss."""

    pass


class CacheReserveError(CacheTransientError):
    """Raised when saving a key that already exists or is being saved."""

    pass


# ============================================================================
# Dependency Installer Exceptions
# ============================================================================


class DependencyInstallError(RuntimeKitError):
    """Raised when the dependency installer (Bundler) fails."""

    pass
