"""
Cross-process locks around runtime installs.

Two jobs sharing a self-hosted tool cache may try to install the same
prefix at once; each install holds ``install-<id>.lock`` under the
RuntimeKit home while it downloads, extracts and marks the prefix.

Usage:
    with LockManager().install_lock("ruby-3.3.0-x64"):
        ...
"""

import logging
import re
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from filelock import FileLock, Timeout as LockTimeout

from runtimekit.core.directory import get_runtimekit_home

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[/\\:]")


class LockManager:
    """Hands out one file lock per install id inside ``lock_dir``."""

    def __init__(self, lock_dir: Optional[Path] = None):
        self.lock_dir = Path(lock_dir) if lock_dir is not None else get_runtimekit_home() / "lock"
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def lock_path(self, install_id: str) -> Path:
        return self.lock_dir / f"install-{_UNSAFE.sub('-', install_id)}.lock"

    @contextmanager
    def install_lock(self, install_id: str, timeout: int = 600) -> Iterator[None]:
        """
        Hold the install lock for ``install_id`` for the duration of the block.

        Raises:
            LockTimeout: Another holder kept the lock for ``timeout`` seconds
        """
        path = self.lock_path(install_id)
        try:
            with FileLock(path, timeout=timeout):
                logger.debug(f"Locked {path}")
                yield
        except LockTimeout as e:
            raise LockTimeout(
                f"Could not acquire install lock for {install_id} within {timeout}s; "
                "another job is installing the same runtime"
            ) from e
        logger.debug(f"Unlocked {path}")


__all__ = ["LockManager", "LockTimeout"]
