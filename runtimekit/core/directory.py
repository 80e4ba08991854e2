"""
Directory layout for RuntimeKit.

Directory Structure:
    Tool cache ($RUNNER_TOOL_CACHE or ~/.runtimekit/toolcache):
        - Ruby/<version>/<arch>/   : Installed MRI releases shared across runs
        - Ruby/<version>/<arch>.complete : Marker shipped with runner images

    Per-user runtimes (non tool-cache installs):
        - POSIX:   ~/.rubies/<engine>-<version>
        - Windows: <drive>:\\<archive-base>

    RuntimeKit home ($RUNTIMEKIT_HOME or ~/.runtimekit):
        - lock/   : Install locks
        - cache/  : Local dependency cache store
"""

import os
import tempfile
from pathlib import Path, PureWindowsPath
from typing import Mapping, Optional

TOOL_CACHE_NAME = "Ruby"


def _env(env: Optional[Mapping[str, str]]) -> Mapping[str, str]:
    return os.environ if env is None else env


def get_runtimekit_home(env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the RuntimeKit home directory.

    Returns:
        $RUNTIMEKIT_HOME when set, otherwise ~/.runtimekit
    """
    home = _env(env).get("RUNTIMEKIT_HOME")
    if home:
        return Path(home)
    return Path.home() / ".runtimekit"


def get_tool_cache_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """
    Get the persistent tool cache directory.

    Returns:
        $RUNNER_TOOL_CACHE when set, otherwise <RuntimeKit home>/toolcache

    Example:
        >>> get_tool_cache_dir({"RUNNER_TOOL_CACHE": "/opt/hostedtoolcache"})
        PosixPath('/opt/hostedtoolcache')
    """
    tool_cache = _env(env).get("RUNNER_TOOL_CACHE")
    if tool_cache:
        return Path(tool_cache)
    return get_runtimekit_home(env) / "toolcache"


def get_tool_cache_prefix(
    version: str, architecture: str, env: Optional[Mapping[str, str]] = None
) -> Path:
    """Get the tool cache prefix for an MRI release."""
    return get_tool_cache_dir(env) / TOOL_CACHE_NAME / version / architecture


def get_rubies_dir() -> Path:
    """Get the per-user directory for runtimes outside the tool cache."""
    return Path.home() / ".rubies"


def get_windows_drive(env: Optional[Mapping[str, str]] = None) -> str:
    """
    Get the drive letter used for Windows runtime prefixes.

    The drive holding GITHUB_WORKSPACE is preferred (it is the faster SSD
    on hosted runners), falling back to C.
    """
    workspace = _env(env).get("GITHUB_WORKSPACE", "")
    drive = PureWindowsPath(workspace).drive if workspace else ""
    return drive.rstrip(":").upper() or "C"


def get_temp_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Get the runner temporary directory, or the system one."""
    runner_temp = _env(env).get("RUNNER_TEMP")
    if runner_temp:
        return Path(runner_temp)
    return Path(tempfile.gettempdir())


__all__ = [
    "TOOL_CACHE_NAME",
    "get_runtimekit_home",
    "get_tool_cache_dir",
    "get_tool_cache_prefix",
    "get_rubies_dir",
    "get_windows_drive",
    "get_temp_dir",
]
