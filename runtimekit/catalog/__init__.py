"""
Version catalogs: the static tables of downloadable runtime builds.
"""

from .data import CatalogDataError, load_catalog_data
from .versions import (
    ARCHITECTURE_PRECEDENCE,
    HEAD_VERSIONS,
    CatalogEntry,
    VersionCatalog,
    is_head_version,
    is_stable_version,
    version_components,
    version_key,
)

__all__ = [
    "CatalogDataError",
    "load_catalog_data",
    "ARCHITECTURE_PRECEDENCE",
    "HEAD_VERSIONS",
    "CatalogEntry",
    "VersionCatalog",
    "is_head_version",
    "is_stable_version",
    "version_components",
    "version_key",
]
