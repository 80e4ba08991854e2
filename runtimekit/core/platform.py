"""
Platform detection for RuntimeKit.

Runtime archives are published per CI image ("ubuntu-22.04", "macos-14",
"windows-2022"). This module maps the current host to that image name, using
the runner's ImageOS variable when present and host detection otherwise.

Usage:
    from runtimekit.core.platform import detect_platform

    info = detect_platform()
    print(info.virtual_environment)  # e.g. 'ubuntu-22.04'
"""

import functools
import os
import platform
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

_SYSTEMS = {"Linux": "linux", "Darwin": "macos", "Windows": "windows"}

_MACHINES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
    "aarch64": "arm64",
    "arm64": "arm64",
}


@dataclass(frozen=True)
class PlatformInfo:
    """
    Where RuntimeKit is running.

    Attributes:
        os: "linux", "macos" or "windows"
        arch: Host CPU as returned by detect_architecture
        virtual_environment: Runner image name, such as "ubuntu-22.04"
    """

    os: str
    arch: str
    virtual_environment: str

    @property
    def is_windows(self) -> bool:
        return self.virtual_environment.startswith("windows-")

    @property
    def is_macos(self) -> bool:
        return self.virtual_environment.startswith("macos-")

    def __str__(self) -> str:
        return f"{self.virtual_environment} ({self.os}-{self.arch})"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """Describe the host once per process; see clear_platform_cache."""
    os_name = _detect_os()
    return PlatformInfo(
        os=os_name,
        arch=detect_architecture(),
        virtual_environment=get_virtual_environment_name(os.environ, os_name),
    )


def get_virtual_environment_name(
    env: Mapping[str, str], os_name: Optional[str] = None
) -> str:
    """
    Get the CI image name for the current host.

    Args:
        env: Environment mapping, consulted for ImageOS
        os_name: Host OS override (detected when None)

    Returns:
        Image name such as 'ubuntu-22.04', 'macos-14' or 'windows-2022'

    Raises:
        RuntimeError: If ImageOS is set to an unknown value, or the host
            cannot be mapped to an image name

    Example:
        >>> get_virtual_environment_name({"ImageOS": "ubuntu22"})
        'ubuntu-22.04'
    """
    image_os = env.get("ImageOS")
    if image_os:
        return _parse_image_os(image_os)

    os_name = os_name or _detect_os()
    if os_name == "linux":
        distribution, version = _detect_distribution()
        if distribution and version:
            return f"{distribution}-{version}"
        raise RuntimeError("Could not determine Linux distribution and version")
    elif os_name == "macos":
        major = platform.mac_ver()[0].split(".")[0]
        return f"macos-{major}"
    elif os_name == "windows":
        return f"windows-{_detect_windows_release()}"

    raise RuntimeError(f"Unsupported operating system: {os_name}")


def _parse_image_os(image_os: str) -> str:
    """Translate a runner ImageOS value ('ubuntu22', 'macos14', 'win22')."""
    match = re.match(r"^ubuntu(\d+)", image_os)
    if match:
        return f"ubuntu-{match.group(1)}.04"

    match = re.match(r"^macos(\d{2})(\d+)?", image_os)
    if match:
        major = match.group(1)
        if major == "10":
            # macos1015 -> macos-10.15
            return f"macos-{major}.{match.group(2)}"
        return f"macos-{major}"

    match = re.match(r"^win(\d+)", image_os)
    if match:
        return f"windows-20{match.group(1)}"

    raise RuntimeError(f"Unknown ImageOS {image_os}")


def _detect_os() -> str:
    """Return "linux", "macos" or "windows" for the running host."""
    system = platform.system()
    try:
        return _SYSTEMS[system]
    except KeyError:
        raise RuntimeError(f"RuntimeKit cannot run on {system or 'an unknown OS'}") from None


def detect_architecture() -> str:
    """
    Host CPU in runner terms.

    Returns:
        "x64", "x86", "arm64" or "arm"; other machine names pass through lowercased
    """
    machine = platform.machine().lower()
    if machine.startswith("arm") and machine not in _MACHINES:
        return "arm"
    return _MACHINES.get(machine, machine)


def _detect_distribution(os_release: Path = Path("/etc/os-release")) -> tuple:
    """
    Detect Linux distribution ID and version from os-release.

    Returns:
        (id, version_id) tuple, with empty strings when unknown
    """
    values = {}
    if os_release.exists():
        for line in os_release.read_text().splitlines():
            if "=" in line:
                key, value = line.split("=", 1)
                values[key.strip()] = value.strip().strip('"').strip("'")

    return values.get("ID", ""), values.get("VERSION_ID", "")


def _detect_windows_release() -> str:
    """Map the Windows build number to a server release year."""
    build = platform.version().split(".")[-1]
    if build.isdigit() and int(build) >= 26100:
        return "2025"
    if build.isdigit() and int(build) >= 20348:
        return "2022"
    return "2019"


def clear_platform_cache():
    """Forget the cached detect_platform result, e.g. after ImageOS changes."""
    detect_platform.cache_clear()


__all__ = [
    "PlatformInfo",
    "detect_platform",
    "detect_architecture",
    "get_virtual_environment_name",
    "clear_platform_cache",
]
