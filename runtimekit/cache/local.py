"""
Directory-backed cache service.

Stores each saved key as a tar.gz archive next to a JSON index. The index is
guarded by a file lock and rewritten atomically, so a self-hosted runner
can share one cache directory between jobs.

Directory Structure:
    <cache_dir>/
        - index.json          : key -> archive name, size, sequence number
        - index.lock          : Lock for index updates
        - <digest>.tar.gz     : One archive per key

Example:
    >>> service = LocalCacheService(Path("~/.runtimekit/cache").expanduser())
    >>> service.save(["vendor/bundle"], "bundler-cache-abc")
    >>> service.restore(["vendor/bundle"], "bundler-cache-abd", ["bundler-cache-"])
    'bundler-cache-abc'
"""

import hashlib
import json
import logging
import tarfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Sequence

from filelock import FileLock, Timeout

from runtimekit.cache.service import validate_key, validate_paths
from runtimekit.core.exceptions import (
    CacheReserveError,
    CacheTransientError,
    CacheValidationError,
)
from runtimekit.core.filesystem import (
    FilesystemError,
    atomic_write,
    existing_paths,
    extract_archive,
    is_relative_to,
)

logger = logging.getLogger(__name__)


class LocalCacheService:
    """
    Cache service storing archives in a local directory.

    Args:
        cache_dir: Directory holding the index and archives
        root: Directory that cached paths are relative to (default: cwd)
        lock_timeout: Seconds to wait for the index lock
    """

    def __init__(
        self, cache_dir: Path, root: Optional[Path] = None, lock_timeout: int = 30
    ):
        self.cache_dir = Path(cache_dir)
        self.root = Path(root) if root is not None else Path.cwd()
        self.index_path = self.cache_dir / "index.json"
        self.lock_path = self.cache_dir / "index.lock"
        self.lock_timeout = lock_timeout

    @contextmanager
    def _locked(self):
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        try:
            with FileLock(self.lock_path, timeout=self.lock_timeout):
                yield
        except Timeout as e:
            raise CacheTransientError(
                f"Could not acquire cache index lock after {self.lock_timeout}s"
            ) from e

    def _load_index(self) -> dict:
        if not self.index_path.exists():
            return {"version": 1, "sequence": 0, "entries": {}}

        try:
            with open(self.index_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise CacheTransientError(f"Failed to load cache index: {e}") from e

        if "entries" not in data:
            raise CacheTransientError(f"Invalid cache index: {self.index_path}")
        return data

    def _save_index(self, data: dict) -> None:
        atomic_write(self.index_path, json.dumps(data, indent=2, ensure_ascii=False))

    def _drop_orphans(self, data: dict) -> None:
        """Remove index entries whose archive file is gone, so the key can be saved again."""
        orphans = [
            k for k, entry in data["entries"].items()
            if not (self.cache_dir / entry["archive"]).is_file()
        ]
        for k in orphans:
            archive = data["entries"].pop(k)["archive"]
            logger.warning(f"Dropping cache entry {k}: archive {archive} is missing")
        if orphans:
            self._save_index(data)

    def _resolve(self, path: str) -> Path:
        resolved = (self.root / path).resolve()
        if not is_relative_to(resolved, self.root.resolve()):
            raise CacheValidationError(
                f"Path Validation Error: {path} is outside of {self.root}"
            )
        return resolved

    def restore(
        self, paths: Sequence[str], key: str, restore_keys: Sequence[str] = ()
    ) -> Optional[str]:
        """
        Restore the exact key, or the newest entry matching a restore key.

        Returns:
            The restored key, or None on a miss
        """
        validate_paths(paths)
        for k in [key, *restore_keys]:
            validate_key(k)

        with self._locked():
            data = self._load_index()
            self._drop_orphans(data)
        entries = data["entries"]

        matched = key if key in entries else None
        for prefix in restore_keys:
            if matched is not None:
                break
            candidates = [k for k in entries if k.startswith(prefix)]
            if candidates:
                matched = max(candidates, key=lambda k: entries[k]["sequence"])

        if matched is None:
            logger.debug(f"Cache miss for {key}")
            return None

        archive = self.cache_dir / entries[matched]["archive"]
        try:
            extract_archive(archive, self.root)
        except FilesystemError as e:
            raise CacheTransientError(f"Failed to restore cache {matched}: {e}") from e

        logger.info(f"Cache restored from key: {matched}")
        return matched

    def save(self, paths: Sequence[str], key: str) -> None:
        """
        Archive paths under key.

        Raises:
            CacheValidationError: If key or paths are invalid
            CacheReserveError: If key already exists
            CacheTransientError: If none of the paths exist
        """
        validate_paths(paths)
        validate_key(key)

        resolved = [self._resolve(p) for p in paths]
        present = existing_paths(resolved)
        if not present:
            raise CacheTransientError(
                "Path Validation Error: Path(s) specified in the action for "
                "caching do(es) not exist, hence no cache is being saved."
            )

        archive_name = f"{hashlib.sha256(key.encode('utf-8')).hexdigest()[:32]}.tar.gz"
        archive = self.cache_dir / archive_name

        with self._locked():
            data = self._load_index()
            if key in data["entries"]:
                raise CacheReserveError(
                    f"Unable to reserve cache with key {key}, another job may be "
                    "creating this cache."
                )

            try:
                with tarfile.open(archive, "w:gz") as tar:
                    for path in present:
                        tar.add(path, arcname=str(path.relative_to(self.root.resolve())))
            except (OSError, tarfile.TarError) as e:
                archive.unlink(missing_ok=True)
                raise CacheTransientError(f"Failed to save cache {key}: {e}") from e

            data["sequence"] = data.get("sequence", 0) + 1
            data["entries"][key] = {
                "archive": archive_name,
                "size": archive.stat().st_size,
                "sequence": data["sequence"],
                "created": datetime.now(timezone.utc).isoformat(),
            }
            self._save_index(data)

        logger.info(f"Cache saved with key: {key}")


__all__ = ["LocalCacheService"]
