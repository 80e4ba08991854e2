"""
Version request parsing and resolution.

A request such as "3.2", "jruby", "truffleruby-24" or ".ruby-version" is
turned into an (engine, version pattern) pair, then matched against the
catalog of one installer.

Resolution rules:
- A pattern present verbatim in the catalog is returned unchanged.
- Otherwise the newest release whose leading components equal the pattern's
  components wins. Components split on "." and "-", so "3.2" matches
  "3.2.4" but never "3.20.0".
- Purely numeric releases are preferred over pre-releases; head builds are
  only ever matched exactly.
- The empty pattern selects the newest release.

Example:
    >>> resolve("ruby", "3.1", catalog, "ubuntu-22.04")
    '3.1.2'
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from runtimekit.catalog.versions import (
    VersionCatalog,
    is_head_version,
    is_stable_version,
    version_components,
)
from runtimekit.core.exceptions import (
    InvalidInputError,
    UnknownEngineError,
    UnknownVersionError,
)

logger = logging.getLogger(__name__)

ARCHITECTURES = ("x64", "x86", "default")

RUBY_VERSION_FILE = ".ruby-version"
TOOL_VERSIONS_FILE = ".tool-versions"


@dataclass(frozen=True)
class ResolutionRequest:
    """A parsed runtime request. Immutable once produced."""

    engine: str
    version_pattern: str
    architecture: str = "x64"

    def __post_init__(self):
        if self.architecture not in ARCHITECTURES:
            raise InvalidInputError(f"Invalid architecture: {self.architecture}")


def read_version_request(ruby_version: str, working_dir: Path = Path(".")) -> str:
    """
    Expand 'default', '.ruby-version' and '.tool-versions' into a request.

    Args:
        ruby_version: Raw input value
        working_dir: Directory holding the version files

    Returns:
        The request string, e.g. '3.3' or 'jruby-9.4'

    Raises:
        InvalidInputError: If 'default' is used without a version file, or a
            version file holds no usable entry
    """
    if ruby_version == "default":
        if (working_dir / RUBY_VERSION_FILE).exists():
            ruby_version = RUBY_VERSION_FILE
        elif (working_dir / TOOL_VERSIONS_FILE).exists():
            ruby_version = TOOL_VERSIONS_FILE
        else:
            raise InvalidInputError(
                "input ruby-version needs to be specified if no "
                ".ruby-version or .tool-versions file exists"
            )

    if ruby_version == RUBY_VERSION_FILE:
        request = (working_dir / RUBY_VERSION_FILE).read_text(encoding="utf-8").strip()
        logger.info(f"Using {request} as input from file {RUBY_VERSION_FILE}")
        return request

    if ruby_version == TOOL_VERSIONS_FILE:
        content = (working_dir / TOOL_VERSIONS_FILE).read_text(encoding="utf-8")
        for line in content.splitlines():
            match = re.match(r"^ruby\s+(.+)$", line.strip())
            if match:
                # asdf allows several space-separated fallbacks; the first wins
                request = match.group(1).split()[0]
                logger.info(f"Using {request} as input from file {TOOL_VERSIONS_FILE}")
                return request
        raise InvalidInputError(f"No ruby entry found in {TOOL_VERSIONS_FILE}")

    return ruby_version


def parse_engine_and_version(request: str) -> Tuple[str, str]:
    """
    Split a request string into engine and version pattern.

    Example:
        >>> parse_engine_and_version("3.2")
        ('ruby', '3.2')
        >>> parse_engine_and_version("jruby")
        ('jruby', '')
        >>> parse_engine_and_version("truffleruby-24.0")
        ('truffleruby', '24.0')
    """
    request = request.strip()
    if not request:
        raise InvalidInputError("Empty ruby-version request")

    if re.match(r"^\d+", request) or is_head_version(request):
        return "ruby", request
    if "-" not in request:
        # Engine only, resolution picks its latest release
        return request, ""

    engine, version = request.split("-", 1)
    return engine, version


def _matches_prefix(version: str, pattern: str) -> bool:
    pattern_parts = version_components(pattern)
    return version_components(version)[: len(pattern_parts)] == pattern_parts


def resolve(
    engine: str,
    version_pattern: str,
    catalog: Optional[VersionCatalog],
    platform: str,
) -> str:
    """
    Resolve a version pattern to one concrete catalog version.

    Args:
        engine: Engine name, used in error messages
        version_pattern: Exact version, prefix, head marker or ""
        catalog: Catalog for the engine, None if the platform has none
        platform: Platform name, used in error messages

    Returns:
        Concrete version string present in the catalog

    Raises:
        UnknownEngineError: If catalog is None
        UnknownVersionError: If nothing matches
    """
    if catalog is None:
        raise UnknownEngineError(engine, platform)

    if version_pattern in catalog:
        return version_pattern

    newest_first = catalog.newest_first()

    # Stable releases first, so an engine-only request gets the latest stable
    for version in newest_first:
        if is_stable_version(version) and _matches_prefix(version, version_pattern):
            return version

    for version in newest_first:
        if not is_head_version(version) and _matches_prefix(version, version_pattern):
            return version

    raise UnknownVersionError(engine, version_pattern, platform, catalog.versions)


__all__ = [
    "ARCHITECTURES",
    "ResolutionRequest",
    "read_version_request",
    "parse_engine_and_version",
    "resolve",
]
