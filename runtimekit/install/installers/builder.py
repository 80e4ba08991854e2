"""
Prebuilt runtime archives from the ruby-builder release page.

Used on Linux and macOS for every engine, and on Windows for engines other
than MRI. The release page carries x64 builds of legacy releases only
(MRI 1.8.7 to 2.0.0, JRuby 1.7 and 9.0); head builds are not published.
"""

import logging
from pathlib import Path
from typing import Mapping, Optional

from runtimekit.catalog.data import load_catalog_data
from runtimekit.catalog.versions import VersionCatalog, is_head_version
from runtimekit.core.directory import (
    get_rubies_dir,
    get_tool_cache_prefix,
    get_windows_drive,
)
from runtimekit.core.environment import EnvironmentDelta
from runtimekit.core.exceptions import (
    ArchitectureUnsupportedError,
    ResolutionError,
    UnknownVersionError,
)
from runtimekit.core.platform import detect_architecture
from runtimekit.install.plan import InstallPlan

logger = logging.getLogger(__name__)

CATALOG_FILE = "ruby-builder-versions.json"

# Compiled JRuby extensions need a C compiler on Windows
MSYS2_GCC = Path("C:\\msys64\\mingw64\\bin\\gcc.exe")


def should_use_tool_cache(engine: str, version: str) -> bool:
    """Only MRI releases live in the shared tool cache."""
    return engine == "ruby" and not is_head_version(version)


def builder_platform(platform: str, host_arch: Optional[str] = None) -> str:
    """
    Map a platform to the name used in ruby-builder archive names.

    Example:
        >>> builder_platform("windows-2022")
        'windows-latest'
        >>> builder_platform("macos-14", host_arch="arm64")
        'macos-14-arm64'
    """
    if platform.startswith("windows-"):
        return "windows-latest"
    if platform.startswith("macos-"):
        arch = host_arch or detect_architecture()
        return "macos-14-arm64" if arch == "arm64" else "macos-latest"
    return platform


def download_url(
    platform: str, engine: str, version: str, host_arch: Optional[str] = None
) -> str:
    """
    Get the archive URL of one build.

    Raises:
        ResolutionError: For head versions, which the release page does not carry
    """
    if is_head_version(version):
        raise ResolutionError(f"Head versions are not available: {engine}-{version}")
    return (
        f"{load_catalog_data(CATALOG_FILE)['release_url']}/"
        f"{engine}-{version}-{builder_platform(platform, host_arch)}.tar.gz"
    )


def available_versions(
    platform: str, engine: str, architecture: str
) -> Optional[VersionCatalog]:
    """
    Get the catalog for an engine, or None if the engine is unknown.

    Raises:
        ArchitectureUnsupportedError: For x86, which has no prebuilt archives
    """
    if architecture == "x86":
        raise ArchitectureUnsupportedError(
            architecture, f"no prebuilt {engine} archives for {platform}"
        )

    versions = load_catalog_data(CATALOG_FILE)["versions"].get(engine)
    if versions is None:
        return None

    host_arch = detect_architecture()
    return VersionCatalog.from_mapping(
        engine,
        "x64",
        {v: download_url(platform, engine, v, host_arch) for v in versions},
    )


def plan(
    platform: str,
    engine: str,
    architecture: str,
    version: str,
    env: Mapping[str, str],
) -> InstallPlan:
    """Compute where and how to install a resolved version."""
    catalog = available_versions(platform, engine, architecture)
    entry = catalog.get(version) if catalog is not None else None
    if entry is None:
        raise UnknownVersionError(
            engine, version, platform, catalog.versions if catalog else []
        )

    use_tool_cache = should_use_tool_cache(engine, version)
    if use_tool_cache:
        prefix = get_tool_cache_prefix(version, "x64", env)
    elif platform.startswith("windows-"):
        prefix = Path(f"{get_windows_drive(env)}:\\{engine}-{version}")
    else:
        prefix = get_rubies_dir() / f"{engine}-{version}"

    toolchain = None
    if platform.startswith("windows-") and engine == "jruby" and not MSYS2_GCC.exists():
        toolchain = "msys2"

    return InstallPlan(
        platform=platform,
        engine=engine,
        version=version,
        architecture="x64",
        download_url=entry.download_location,
        archive_format="tar.gz",
        prefix=prefix,
        use_tool_cache=use_tool_cache,
        environment=EnvironmentDelta(path_entries=[str(prefix / "bin")]),
        toolchain=toolchain,
    )


__all__ = [
    "should_use_tool_cache",
    "builder_platform",
    "download_url",
    "available_versions",
    "plan",
]
