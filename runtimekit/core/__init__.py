"""
Core functionality for RuntimeKit.

This package contains the foundational modules that other components depend on.
"""

from .environment import EnvironmentDelta, pre_install_delta

from .platform import (
    PlatformInfo,
    detect_platform,
    get_virtual_environment_name,
    clear_platform_cache,
)

from .exceptions import (
    RuntimeKitError,
    InvalidInputError,
    ResolutionError,
    UnknownEngineError,
    UnknownVersionError,
    ArchitectureUnsupportedError,
    InstallError,
    DownloadFailedError,
    ExtractFailedError,
    CacheError,
    CacheValidationError,
    CacheTransientError,
    CacheReserveError,
    DependencyInstallError,
)

__all__ = [
    "EnvironmentDelta",
    "pre_install_delta",
    "PlatformInfo",
    "detect_platform",
    "get_virtual_environment_name",
    "clear_platform_cache",
    "RuntimeKitError",
    "InvalidInputError",
    "ResolutionError",
    "UnknownEngineError",
    "UnknownVersionError",
    "ArchitectureUnsupportedError",
    "InstallError",
    "DownloadFailedError",
    "ExtractFailedError",
    "CacheError",
    "CacheValidationError",
    "CacheTransientError",
    "CacheReserveError",
    "DependencyInstallError",
]
