"""
Installer variants.

An `Installer` bundles the two functions a variant provides: the catalog of
versions it can install and the install plan for one resolved version. The
variant is picked once per run by `select_installer`.

Example:
    >>> installer = select_installer("ubuntu-22.04", "ruby")
    >>> installer.name
    'builder'
"""

from dataclasses import dataclass
from typing import Callable, Mapping, Optional

from runtimekit.catalog.versions import VersionCatalog
from runtimekit.install.plan import InstallPlan

from . import builder, windows


@dataclass(frozen=True)
class Installer:
    """One installer variant."""

    name: str
    available_versions: Callable[[str, str, str], Optional[VersionCatalog]]
    plan: Callable[[str, str, str, str, Mapping[str, str]], InstallPlan]


BUILDER = Installer("builder", builder.available_versions, builder.plan)
WINDOWS = Installer("windows", windows.available_versions, windows.plan)


def select_installer(platform: str, engine: str) -> Installer:
    """RubyInstaller for MRI on Windows, prebuilt archives everywhere else."""
    if platform.startswith("windows-") and engine == "ruby":
        return WINDOWS
    return BUILDER


__all__ = ["Installer", "BUILDER", "WINDOWS", "select_installer"]
