"""
Dependency cache for installed packages.

The cache key is derived from everything that affects the installed gems:

    {scope}-{platform}-{architecture}-{engine}-{version}[-revision-{rev}]-{lock file}
        + "-" + sha256(lock file contents)

Head builds of MRI and TruffleRuby change under the same version name, so
their source revision is part of the key. When only the lock file changed,
the newest cache sharing the base key is restored as a starting point and
stale gems are cleaned before a new cache is saved.

Cache service failures never fail the build, except validation errors which
indicate a broken key or path and are raised.

Example:
    >>> manager = DependencyCacheManager(service, bundler, runtime, "ubuntu-22.04")
    >>> result = manager.ensure_dependencies(Path("Gemfile.lock"))
    >>> result.reused
    True
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Mapping, Optional, Tuple

from runtimekit.cache.service import CacheService
from runtimekit.catalog.versions import is_head_version
from runtimekit.core import process
from runtimekit.core.exceptions import (
    CacheReserveError,
    CacheValidationError,
    DependencyInstallError,
)
from runtimekit.core.filesystem import FilesystemError, compute_file_hash
from runtimekit.install.plan import InstalledRuntime
from runtimekit.packages.base import DependencyInstaller
from runtimekit.packages.bundler import BUNDLE_PATH

logger = logging.getLogger(__name__)

CACHE_SCOPE = "runtimekit-bundler-cache-v3"


@dataclass(frozen=True)
class CacheRecord:
    """
    One computed cache key and what the store matched for it.

    Attributes:
        key: Full content-derived key
        base_key: Key without the lock file hash
        paths: Cached paths, relative to the project root
        restored_key: Key the store restored, or None on a miss
    """

    key: str
    base_key: str
    paths: Tuple[str, ...]
    restored_key: Optional[str] = None

    @property
    def fallback_key(self) -> str:
        return f"{self.base_key}-"

    @property
    def exact_hit(self) -> bool:
        return self.restored_key == self.key

    @property
    def fallback_hit(self) -> bool:
        return self.restored_key is not None and self.restored_key != self.key


@dataclass(frozen=True)
class DependencyCacheResult:
    """Outcome of `DependencyCacheManager.ensure_dependencies`."""

    record: CacheRecord
    cleaned: bool
    saved: bool

    @property
    def key(self) -> str:
        return self.record.key

    @property
    def restored_key(self) -> Optional[str]:
        return self.record.restored_key

    @property
    def reused(self) -> bool:
        return self.record.restored_key is not None


class CacheKeyBuilder:
    """
    Computes dependency cache keys for one installed runtime.

    Args:
        runtime: Installed runtime the dependencies are built for
        platform: Platform name (e.g. 'ubuntu-22.04')
        architecture: Architecture used in the key (defaults to the runtime's)
        project_root: Directory the lock file and cache paths are relative to
        env: Environment for the revision query
        run: Subprocess primitive
        cache_path: Directory holding installed dependencies
    """

    def __init__(
        self,
        runtime: InstalledRuntime,
        platform: str,
        architecture: Optional[str] = None,
        project_root: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
        run: Callable[..., process.ProcessResult] = process.run,
        cache_path: str = BUNDLE_PATH,
    ):
        self.runtime = runtime
        self.platform = platform
        self.architecture = architecture or runtime.architecture
        self.project_root = project_root or Path.cwd()
        self.env = os.environ if env is None else env
        self.run = run
        self.cache_path = cache_path

    def _lock_file_name(self, lock_file: Path) -> str:
        if lock_file.is_absolute():
            try:
                return lock_file.relative_to(self.project_root).as_posix()
            except ValueError:
                return lock_file.as_posix()
        return lock_file.as_posix()

    def query_revision(self) -> str:
        """
        Ask the runtime for its source revision.

        Raises:
            DependencyInstallError: If the query fails
        """
        ruby = self.runtime.bin_dir / "ruby"
        try:
            result = self.run(
                ruby, ["-e", "print RUBY_REVISION"], env=self.env, silent=True
            )
        except OSError as e:
            raise DependencyInstallError(f"Failed to run {ruby}: {e}") from e
        if not result.ok:
            raise DependencyInstallError(
                f"Failed to query RUBY_REVISION (exit code {result.exit_code})"
            )
        return result.stdout.strip()

    def compute_base_key(self, lock_file: Path, cache_scope: str = CACHE_SCOPE) -> str:
        """Build the key shared by every lock file revision of this runtime."""
        runtime = self.runtime
        key = (
            f"{cache_scope}-{self.platform}-{self.architecture}-"
            f"{runtime.engine}-{runtime.version}"
        )
        if runtime.engine != "jruby" and is_head_version(runtime.version):
            key += f"-revision-{self.query_revision()}"
        return f"{key}-{self._lock_file_name(lock_file)}"

    def compute_key(
        self, lock_file: Path, cache_scope: str = CACHE_SCOPE
    ) -> CacheRecord:
        """
        Compute the full cache key for a lock file.

        Raises:
            DependencyInstallError: If the lock file cannot be read
        """
        lock_path = lock_file
        if not lock_file.is_absolute():
            lock_path = self.project_root / lock_file
        try:
            digest = compute_file_hash(lock_path, "sha256")
        except (FilesystemError, OSError) as e:
            raise DependencyInstallError(
                f"Cannot hash lock file {lock_path}: {e}"
            ) from e

        base_key = self.compute_base_key(lock_file, cache_scope)
        return CacheRecord(
            key=f"{base_key}-{digest}",
            base_key=base_key,
            paths=(self.cache_path,),
        )


class DependencyCacheManager(CacheKeyBuilder):
    """
    Restores, installs and saves a project's dependencies.

    Args:
        service: Cache store
        installer: Dependency installer for the project
        runtime: Installed runtime the dependencies are built for
        platform: Platform name (e.g. 'ubuntu-22.04')
        **kwargs: Passed to CacheKeyBuilder
    """

    def __init__(
        self,
        service: CacheService,
        installer: DependencyInstaller,
        runtime: InstalledRuntime,
        platform: str,
        **kwargs,
    ):
        super().__init__(runtime, platform, **kwargs)
        self.service = service
        self.installer = installer

    def restore(self, record: CacheRecord) -> CacheRecord:
        """
        Restore the cache for a record.

        Raises:
            CacheValidationError: If the store rejects the key or paths
        """
        restored_key = None
        try:
            restored_key = self.service.restore(
                list(record.paths), record.key, [record.fallback_key]
            )
        except CacheValidationError:
            raise
        except Exception as e:
            logger.warning(f"There was an error restoring the cache: {e}")

        if restored_key:
            logger.info(f"Found cache for key: {restored_key}")
        return CacheRecord(
            key=record.key,
            base_key=record.base_key,
            paths=record.paths,
            restored_key=restored_key or None,
        )

    def save(self, record: CacheRecord) -> bool:
        """
        Save the cache for a record.

        Returns:
            True if the store accepted the save

        Raises:
            CacheValidationError: If the store rejects the key or paths
        """
        logger.info("Saving cache")
        try:
            self.service.save(list(record.paths), record.key)
        except CacheValidationError:
            raise
        except CacheReserveError as e:
            logger.info(str(e))
            return False
        except Exception as e:
            logger.warning(f"There was an error saving the cache: {e}")
            return False
        return True

    def ensure_dependencies(
        self, lock_file: Path, cache_scope: str = CACHE_SCOPE
    ) -> DependencyCacheResult:
        """
        Restore cached dependencies, install, and save a new cache if needed.

        Args:
            lock_file: Lock file, relative to project_root or absolute
            cache_scope: Leading tag of the cache key

        Returns:
            DependencyCacheResult

        Raises:
            CacheValidationError: If the store rejects the key or paths
            DependencyInstallError: If a package manager command fails
        """
        self.installer.prepare()

        record = self.compute_key(lock_file, cache_scope)
        logger.info(f"Cache key: {record.key}")
        record = self.restore(record)

        # Always install, an exact hit still lists and verifies the gems
        self.installer.install()

        cleaned = saved = False
        if not record.exact_hit:
            if record.fallback_hit:
                self.installer.clean()
                cleaned = True
            saved = self.save(record)

        return DependencyCacheResult(record=record, cleaned=cleaned, saved=saved)


__all__ = [
    "CACHE_SCOPE",
    "CacheRecord",
    "CacheKeyBuilder",
    "DependencyCacheResult",
    "DependencyCacheManager",
]
