"""
Cache service interface.

The dependency cache talks to a key/value artifact store through two calls:

    restore(paths, key, restore_keys) -> matched key or None
    save(paths, key)

`restore` tries the exact key first, then each restore key as a prefix,
returning whichever key it restored. `save` never overwrites an existing key.

Both calls raise CacheValidationError for malformed input. Anything else
they raise is a backend problem the caller may log and ignore.
"""

from typing import Optional, Protocol, Sequence

from runtimekit.core.exceptions import CacheValidationError

MAX_KEY_LENGTH = 512


class CacheService(Protocol):
    """Key/value artifact store for dependency directories."""

    def restore(
        self, paths: Sequence[str], key: str, restore_keys: Sequence[str] = ()
    ) -> Optional[str]:
        ...

    def save(self, paths: Sequence[str], key: str) -> None:
        ...


def validate_key(key: str) -> None:
    """
    Check a cache key against the store's rules.

    Raises:
        CacheValidationError: If the key is empty, too long or has a comma
    """
    if not key:
        raise CacheValidationError("Cache key cannot be empty")
    if len(key) > MAX_KEY_LENGTH:
        raise CacheValidationError(
            f"Key Validation Error: {key} cannot be larger than "
            f"{MAX_KEY_LENGTH} characters."
        )
    if "," in key:
        raise CacheValidationError(
            f"Key Validation Error: {key} cannot contain commas."
        )


def validate_paths(paths: Sequence[str]) -> None:
    """
    Raises:
        CacheValidationError: If no paths are given
    """
    if not paths:
        raise CacheValidationError(
            "Path Validation Error: At least one directory or file path is required"
        )


__all__ = ["MAX_KEY_LENGTH", "CacheService", "validate_key", "validate_paths"]
