"""
Loading of the static catalog data shipped with RuntimeKit.

The JSON files under runtimekit/data/ are produced by an offline generator
and treated as read-only input here.
"""

import functools
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from runtimekit.core.exceptions import RuntimeKitError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"


class CatalogDataError(RuntimeKitError):
    """Raised when a catalog data file is missing or malformed."""

    pass


@functools.lru_cache(maxsize=None)
def load_catalog_data(name: str, data_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load a catalog data file.

    Args:
        name: File name under the data directory (e.g. 'windows-versions.json')
        data_dir: Optional override of the data directory

    Returns:
        Parsed JSON object

    Raises:
        CatalogDataError: If the file cannot be loaded or parsed
    """
    path = (data_dir or DATA_DIR) / name

    if not path.exists():
        raise CatalogDataError(f"Catalog data file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise CatalogDataError(f"Invalid JSON in catalog data file: {e}\nFile: {path}") from e

    if not isinstance(data, dict):
        raise CatalogDataError(f"Catalog data must be a JSON object\nFile: {path}")

    logger.debug(f"Loaded catalog data from {path}")
    return data


__all__ = ["DATA_DIR", "CatalogDataError", "load_catalog_data"]
