"""
Install plans and installed runtimes.

An installer variant turns (platform, engine, architecture, version) into an
`InstallPlan`: where the archive lives, where the runtime goes and which
environment later steps need. The orchestrator executes plans; it never
decides locations itself.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from runtimekit.core.environment import EnvironmentDelta


@dataclass(frozen=True)
class InstallPlan:
    """
    Everything needed to place one runtime on disk.

    Attributes:
        platform: Platform name (e.g. 'ubuntu-22.04')
        engine: Engine name (e.g. 'ruby')
        version: Concrete catalog version
        architecture: Concrete architecture of the archive ('x64' or 'x86')
        download_url: Archive location
        archive_format: 'tar.gz' or '7z'
        prefix: Final install directory
        use_tool_cache: Whether prefix lives in the shared tool cache
        environment: PATH entries and variables for later steps
        toolchain: Name of an opaque toolchain bootstrap step the platform
            needs ('devkit', 'msvc', 'msys2'), or None
    """

    platform: str
    engine: str
    version: str
    architecture: str
    download_url: str
    archive_format: str
    prefix: Path
    use_tool_cache: bool
    environment: EnvironmentDelta = field(default_factory=EnvironmentDelta)
    toolchain: Optional[str] = None

    @property
    def install_id(self) -> str:
        return f"{self.engine}-{self.version}-{self.architecture}"

    def describe(self) -> str:
        return (
            f"{self.engine}-{self.version} ({self.architecture}) on {self.platform}"
        )


@dataclass(frozen=True)
class InstalledRuntime:
    """A runtime present on disk. Never mutated after creation."""

    prefix: Path
    engine: str
    version: str
    architecture: str
    was_cached: bool = False

    @property
    def bin_dir(self) -> Path:
        return self.prefix / "bin"


__all__ = ["InstallPlan", "InstalledRuntime"]
