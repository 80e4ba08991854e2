"""
Runtime installation.

The orchestrator executes an `InstallPlan` as a small state machine:

    START -> CHECK_TOOL_CACHE -> READY                        (hit)
                              -> DOWNLOAD -> EXTRACT
                                 -> MARK_COMPLETE -> INSTALLED  (miss)

Any failing step ends in FAILED and raises. A zero-byte marker inside the
prefix is the only signal that an install is complete; it is written after
the extracted tree has been renamed into place, so an interrupted install is
never mistaken for a good one.

Example:
    >>> orchestrator = InstallOrchestrator()
    >>> runtime = orchestrator.install(plan)
    >>> print(runtime.prefix)
"""

import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional

from runtimekit.core.download import DownloadError, download_tool
from runtimekit.core.exceptions import DownloadFailedError, ExtractFailedError, InstallError
from runtimekit.core.filesystem import (
    FilesystemError,
    extract_archive,
    move_into_place,
    safe_rmtree,
    single_root,
)
from runtimekit.core.locking import LockManager, LockTimeout
from runtimekit.core.timing import measure
from runtimekit.install.plan import InstalledRuntime, InstallPlan

logger = logging.getLogger(__name__)

COMPLETE_MARKER = ".runtimekit-complete"
DOC_EXCLUDES = ("share/doc",)


class InstallState(Enum):
    START = "start"
    CHECK_TOOL_CACHE = "check_tool_cache"
    READY = "ready"
    DOWNLOAD = "download"
    EXTRACT = "extract"
    MARK_COMPLETE = "mark_complete"
    INSTALLED = "installed"
    FAILED = "failed"


def is_install_complete(prefix: Path) -> bool:
    """
    Check whether a prefix holds a completed install.

    Accepts the marker written by RuntimeKit inside the prefix, and the
    '<arch>.complete' sibling that pre-populated runner tool caches carry.
    """
    if (prefix / COMPLETE_MARKER).is_file():
        return True
    return prefix.is_dir() and Path(f"{prefix}.complete").is_file()


class InstallOrchestrator:
    """
    Ensures a planned runtime is present on disk.

    Args:
        fetch: Download primitive, `fetch(url) -> local path`. Any retry
            policy belongs to it; the orchestrator calls it once.
        extract: Archive primitive, `extract(archive, destination, exclude,
            archive_format)`
        lock_manager: Lock manager guarding concurrent installs of one prefix
        lock_timeout: Seconds to wait for another job installing the same prefix
    """

    def __init__(
        self,
        fetch: Callable[[str], Path] = download_tool,
        extract: Callable[..., None] = extract_archive,
        lock_manager: Optional[LockManager] = None,
        lock_timeout: int = 600,
    ):
        self.fetch = fetch
        self.extract = extract
        self.lock_manager = lock_manager or LockManager()
        self.lock_timeout = lock_timeout
        self.state = InstallState.START
        self.history: List[InstallState] = []

    def _transition(self, state: InstallState) -> None:
        logger.debug(f"Install state: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def install(self, plan: InstallPlan) -> InstalledRuntime:
        """
        Install the runtime described by plan, or reuse a completed install.

        Raises:
            DownloadFailedError: If the archive cannot be fetched
            ExtractFailedError: If the archive cannot be unpacked into place
            InstallError: If another job holds the install lock past lock_timeout
        """
        self.state = InstallState.START
        self.history = [InstallState.START]

        try:
            with self.lock_manager.install_lock(plan.install_id, timeout=self.lock_timeout):
                return self._install_locked(plan)
        except LockTimeout as e:
            self._transition(InstallState.FAILED)
            raise InstallError(
                f"Timed out installing {plan.engine}-{plan.version} "
                f"({plan.architecture}, {plan.platform}): {e}"
            ) from e

    def _install_locked(self, plan: InstallPlan) -> InstalledRuntime:
        self._transition(InstallState.CHECK_TOOL_CACHE)
        if is_install_complete(plan.prefix):
            logger.info(f"Found {plan.describe()} in {plan.prefix}")
            self._transition(InstallState.READY)
            return self._runtime(plan, was_cached=True)

        try:
            self._transition(InstallState.DOWNLOAD)
            archive = self._download(plan)

            self._transition(InstallState.EXTRACT)
            self._extract(plan, archive)

            self._transition(InstallState.MARK_COMPLETE)
            (plan.prefix / COMPLETE_MARKER).touch()
        except Exception:
            self._transition(InstallState.FAILED)
            raise

        self._transition(InstallState.INSTALLED)
        logger.info(f"Installed {plan.describe()} to {plan.prefix}")
        return self._runtime(plan, was_cached=False)

    def _runtime(self, plan: InstallPlan, was_cached: bool) -> InstalledRuntime:
        return InstalledRuntime(
            prefix=plan.prefix,
            engine=plan.engine,
            version=plan.version,
            architecture=plan.architecture,
            was_cached=was_cached,
        )

    def _download(self, plan: InstallPlan) -> Path:
        with measure(f"Downloading {plan.engine}-{plan.version}"):
            logger.info(plan.download_url)
            try:
                return Path(self.fetch(plan.download_url))
            except (DownloadError, OSError, ValueError) as e:
                raise DownloadFailedError(
                    f"Failed to download {plan.describe()} from "
                    f"{plan.download_url}: {e}"
                ) from e

    def _extract(self, plan: InstallPlan, archive: Path) -> None:
        parent = plan.prefix.parent
        staging = parent / f".{plan.prefix.name}.staging-{uuid.uuid4().hex[:8]}"

        with measure(f"Extracting {plan.engine}-{plan.version}"):
            try:
                staging.mkdir(parents=True)
                self.extract(
                    archive,
                    staging,
                    exclude=DOC_EXCLUDES,
                    archive_format=plan.archive_format,
                )

                # Unmarked leftovers from an interrupted run are replaced
                if plan.prefix.exists():
                    safe_rmtree(plan.prefix, require_prefix=parent)
                move_into_place(single_root(staging), plan.prefix)
            except (FilesystemError, OSError, ValueError) as e:
                raise ExtractFailedError(
                    f"Failed to extract {plan.describe()} to {plan.prefix}: {e}"
                ) from e
            finally:
                if staging.exists():
                    safe_rmtree(staging, require_prefix=parent)
                archive.unlink(missing_ok=True)


__all__ = [
    "COMPLETE_MARKER",
    "DOC_EXCLUDES",
    "InstallState",
    "InstallOrchestrator",
    "is_install_complete",
]
