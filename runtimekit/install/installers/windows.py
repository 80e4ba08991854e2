"""
RubyInstaller archives for MRI on Windows.

Separate x64 and x86 catalogs exist; the 'default' architecture merges both
and prefers x64 when a version is published for both. Older releases and
the mswin build need a compiler toolchain, which is described here as
environment plus an opaque bootstrap step name.
"""

import logging
import re
from pathlib import Path, PureWindowsPath
from typing import List, Mapping, Optional, Tuple

from runtimekit.catalog.data import CatalogDataError, load_catalog_data
from runtimekit.catalog.versions import VersionCatalog, is_head_version
from runtimekit.core.directory import get_tool_cache_prefix, get_windows_drive
from runtimekit.core.environment import EnvironmentDelta
from runtimekit.core.exceptions import UnknownVersionError
from runtimekit.install.plan import InstallPlan

logger = logging.getLogger(__name__)

CATALOG_FILE = "windows-versions.json"

# CA bundle shipped with Git for Windows, used by Rubies without their own
CERT_FILE = "C:\\Program Files\\Git\\mingw64\\ssl\\cert.pem"

VCVARS = (
    '"C:\\Program Files\\Microsoft Visual Studio\\2022\\Enterprise'
    '\\VC\\Auxiliary\\Build\\vcvars64.bat"'
)


def _architecture_catalog(engine: str, architecture: str) -> VersionCatalog:
    locations = load_catalog_data(CATALOG_FILE).get(architecture, {})
    return VersionCatalog.from_mapping(engine, architecture, locations)


def available_versions(
    platform: str, engine: str, architecture: str
) -> Optional[VersionCatalog]:
    """Get the RubyInstaller catalog. Only MRI is published."""
    if engine != "ruby":
        return None

    if architecture == "default":
        return VersionCatalog.merged(
            [_architecture_catalog(engine, "x64"), _architecture_catalog(engine, "x86")]
        )
    return _architecture_catalog(engine, architecture)


def archive_base(url: str) -> str:
    """
    Get the top-level directory name of a RubyInstaller archive.

    Example:
        >>> archive_base("https://x/rubyinstaller-3.2.4-1-x64.7z")
        'rubyinstaller-3.2.4-1-x64'
    """
    if not url.endswith(".7z"):
        raise CatalogDataError(f"URL should end in .7z: {url}")
    return url[url.rindex("/") + 1 : -len(".7z")]


def _needs_devkit(version: str) -> bool:
    # Ruby 1.9.3 to 2.3 predate the MSYS2 based RubyInstaller2
    return bool(re.match(r"^(1\.|2\.[0123])", version))


def _devkit_dir(drive: str, architecture: str) -> str:
    return f"{drive}:\\DevKit" if architecture == "x86" else f"{drive}:\\DevKit64"


def _devkit_path_entries(devkit: str, architecture: str) -> List[str]:
    target = "i686-w64-mingw32" if architecture == "x86" else "x86_64-w64-mingw32"
    return [f"{devkit}\\mingw\\{target}\\bin", f"{devkit}\\mingw\\bin", f"{devkit}\\bin"]


def toolchain_environment(
    version: str, architecture: str, env: Mapping[str, str]
) -> Tuple[EnvironmentDelta, Optional[str]]:
    """
    Get the compiler toolchain environment for a Windows Ruby.

    Returns:
        (delta, bootstrap step name or None)
    """
    delta = EnvironmentDelta()

    if version == "mswin":
        delta.set("MAKE", "nmake.exe")
        delta.set("VCVARS", VCVARS)
        return delta, "msvc"

    delta.set("MAKE", "make.exe")
    if _needs_devkit(version):
        devkit = _devkit_dir(get_windows_drive(env), architecture)
        delta.set("SSL_CERT_FILE", CERT_FILE)
        delta.set("RI_DEVKIT", devkit)
        delta.set("CC", "gcc")
        delta.set("CXX", "g++")
        delta.set("CPP", "cpp")
        delta.prepend_path(*_devkit_path_entries(devkit, architecture))
        return delta, "devkit"

    return delta, None


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

    selected_arch = entry.architecture
    logger.info(f"Using {selected_arch} version of {version}")
    base = archive_base(entry.download_location)

    use_tool_cache = engine == "ruby" and not is_head_version(version)
    if use_tool_cache:
        prefix = get_tool_cache_prefix(version, selected_arch, env)
    else:
        prefix = Path(f"{get_windows_drive(env)}:\\{base}")

    environment, toolchain = toolchain_environment(version, selected_arch, env)
    environment.prepend_path(str(PureWindowsPath(str(prefix)) / "bin"))

    return InstallPlan(
        platform=platform,
        engine=engine,
        version=version,
        architecture=selected_arch,
        download_url=entry.download_location,
        archive_format="7z",
        prefix=prefix,
        use_tool_cache=use_tool_cache,
        environment=environment,
        toolchain=toolchain,
    )


__all__ = [
    "CERT_FILE",
    "available_versions",
    "archive_base",
    "toolchain_environment",
    "plan",
]
