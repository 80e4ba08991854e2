"""
Version catalogs.

A catalog is the static table of concrete versions one installer can provide
for one (engine, architecture) pair, each mapped to its download location.
Catalog versions are always held oldest-first; resolution scans them in
reverse.

Example:
    >>> catalog = VersionCatalog.from_mapping("ruby", "x64", {
    ...     "3.2.0": "https://example.com/ruby-3.2.0.tar.gz",
    ...     "3.1.2": "https://example.com/ruby-3.1.2.tar.gz",
    ... })
    >>> catalog.versions
    ('3.1.2', '3.2.0')
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

HEAD_VERSIONS = ("head", "debug", "mingw", "mswin", "ucrt")
"""Markers for unreleased builds. These only ever match exactly."""

ARCHITECTURE_PRECEDENCE = ("x64", "x86")
"""Preferred architecture when a merged catalog offers a version twice."""

_STABLE_RE = re.compile(r"^\d+(\.\d+)*$")
_COMPONENT_RE = re.compile(r"^(\d*)(.*)$")
_PATCHLEVEL_RE = re.compile(r"^-?p(\d+)$")


def is_head_version(version: str) -> bool:
    """True for unreleased build markers such as 'head' or 'mswin'."""
    return version in HEAD_VERSIONS


def is_stable_version(version: str) -> bool:
    """True for purely numeric releases ('3.2.4'), False for '3.4.0-preview1'."""
    return bool(_STABLE_RE.match(version))


def version_components(version: str) -> List[str]:
    """
    Split a version into the components used for prefix matching.

    Example:
        >>> version_components("1.8.7-p375")
        ['1', '8', '7', 'p375']
    """
    if not version:
        return []
    return re.split(r"[.-]", version)


def _component_key(component: str) -> Tuple[int, int, int, str]:
    number, suffix = _COMPONENT_RE.match(component).groups()
    value = int(number) if number else -1
    if not suffix:
        return (value, 0, 0, "")
    patchlevel = _PATCHLEVEL_RE.match(suffix)
    if patchlevel:
        # 2.0.0-p648 is newer than 2.0.0
        return (value, 1, int(patchlevel.group(1)), "")
    # 3.4.0-preview1 is older than 3.4.0
    return (value, -1, 0, suffix)


def version_key(version: str) -> tuple:
    """
    Sort key implementing version precedence.

    Numeric dot components compare numerically and missing components sort
    first ("3.2" < "3.2.0"). Head markers sort after every release, in the
    order of HEAD_VERSIONS.
    """
    if is_head_version(version):
        return (1, HEAD_VERSIONS.index(version))
    return (0, tuple(_component_key(c) for c in version.split(".")))


@dataclass(frozen=True)
class CatalogEntry:
    """One downloadable build."""

    architecture: str
    version: str
    engine: str
    download_location: str


class VersionCatalog:
    """
    Versions available for one engine and architecture.

    Entries are unique per version and ordered oldest-first at construction,
    whatever order the source data used.
    """

    def __init__(self, engine: str, architecture: str, entries: Iterable[CatalogEntry]):
        self.engine = engine
        self.architecture = architecture

        by_version: Dict[str, CatalogEntry] = {}
        for entry in entries:
            if entry.version in by_version:
                raise ValueError(
                    f"Duplicate version {entry.version} in {engine} "
                    f"{architecture} catalog"
                )
            by_version[entry.version] = entry

        self._entries: Tuple[CatalogEntry, ...] = tuple(
            sorted(by_version.values(), key=lambda e: version_key(e.version))
        )
        self._index = {e.version: e for e in self._entries}

    @classmethod
    def from_mapping(
        cls, engine: str, architecture: str, locations: Mapping[str, str]
    ) -> "VersionCatalog":
        """Build a catalog from a {version: download_location} mapping."""
        return cls(
            engine,
            architecture,
            (
                CatalogEntry(architecture, version, engine, location)
                for version, location in locations.items()
            ),
        )

    @classmethod
    def merged(
        cls,
        catalogs: Sequence["VersionCatalog"],
        precedence: Sequence[str] = ARCHITECTURE_PRECEDENCE,
        architecture: str = "default",
    ) -> "VersionCatalog":
        """
        Combine per-architecture catalogs into one.

        When several catalogs offer the same version, the entry whose
        architecture comes first in `precedence` is kept.
        """
        if not catalogs:
            raise ValueError("Cannot merge an empty list of catalogs")

        def rank(catalog: "VersionCatalog") -> int:
            if catalog.architecture in precedence:
                return precedence.index(catalog.architecture)
            return len(precedence)

        chosen: Dict[str, CatalogEntry] = {}
        for catalog in sorted(catalogs, key=rank):
            for entry in catalog.entries:
                chosen.setdefault(entry.version, entry)

        return cls(catalogs[0].engine, architecture, chosen.values())

    @property
    def entries(self) -> Tuple[CatalogEntry, ...]:
        """Entries, oldest-first."""
        return self._entries

    @property
    def versions(self) -> Tuple[str, ...]:
        """Version strings, oldest-first."""
        return tuple(e.version for e in self._entries)

    def newest_first(self) -> List[str]:
        return list(reversed(self.versions))

    def get(self, version: str) -> Optional[CatalogEntry]:
        return self._index.get(version)

    def __contains__(self, version: object) -> bool:
        return version in self._index

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return (
            f"VersionCatalog(engine={self.engine!r}, "
            f"architecture={self.architecture!r}, versions={len(self)})"
        )


__all__ = [
    "HEAD_VERSIONS",
    "ARCHITECTURE_PRECEDENCE",
    "is_head_version",
    "is_stable_version",
    "version_components",
    "version_key",
    "CatalogEntry",
    "VersionCatalog",
]
