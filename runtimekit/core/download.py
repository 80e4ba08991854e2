"""
HTTP fetch primitive for runtime archives.

The install orchestrator calls download_tool once per plan; transient
failures are retried here with exponential backoff, so a DownloadError
that reaches the caller is final.
"""

import logging
import tempfile
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024
REPORT_INTERVAL = 0.5
MIB = 1024 * 1024


@dataclass
class DownloadProgress:
    """Snapshot of a running transfer."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float

    def __str__(self) -> str:
        return format_progress(self)


class DownloadError(Exception):
    """A file could not be fetched."""

    pass


ProgressCallback = Callable[[DownloadProgress], None]


class _ProgressTracker:
    """Counts received bytes and reports at most every REPORT_INTERVAL seconds."""

    def __init__(self, expected: int, callback: Optional[ProgressCallback]):
        self.expected = expected
        self.callback = callback
        self.received = 0
        self.started = time.time()
        self.reported = self.started

    def add(self, size: int) -> None:
        self.received += size
        if self.callback is None:
            return
        now = time.time()
        finished = self.expected > 0 and self.received >= self.expected
        if finished or now - self.reported >= REPORT_INTERVAL:
            self.reported = now
            self.callback(self.snapshot(now))

    def snapshot(self, now: float) -> DownloadProgress:
        elapsed = now - self.started
        if self.expected > 0:
            total, percentage = self.expected, self.received * 100.0 / self.expected
        else:
            total, percentage = self.received, 0.0
        return DownloadProgress(
            bytes_downloaded=self.received,
            total_bytes=total,
            percentage=percentage,
            speed_bps=self.received / elapsed if elapsed > 0 else 0.0,
        )


def _fetch_once(
    url: str, destination: Path, callback: Optional[ProgressCallback], timeout: int
) -> None:
    with requests.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        tracker = _ProgressTracker(int(response.headers.get("Content-Length") or 0), callback)
        with destination.open("wb") as sink:
            for block in response.iter_content(chunk_size=CHUNK_SIZE):
                if block:
                    sink.write(block)
                    tracker.add(len(block))


def download_tool(
    url: str,
    destination: Optional[Path] = None,
    progress_callback: Optional[ProgressCallback] = None,
    timeout: int = 30,
    max_retries: int = 3,
) -> Path:
    """
    Fetch url to a local file.

    Args:
        url: Archive location
        destination: Where to write; a fresh file in the system temp
            directory when omitted
        progress_callback: Receives DownloadProgress snapshots
        timeout: Per-request timeout in seconds
        max_retries: Total number of attempts

    Returns:
        The path written

    Raises:
        ValueError: url is empty
        DownloadError: Every attempt failed
    """
    if not url:
        raise ValueError("URL cannot be empty")

    target = Path(destination) if destination else Path(tempfile.gettempdir()) / uuid.uuid4().hex
    target.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Downloading {url}")
    attempt = 0
    while True:
        attempt += 1
        try:
            _fetch_once(url, target, progress_callback, timeout)
        except RequestException as e:
            target.unlink(missing_ok=True)
            if attempt >= max_retries:
                raise DownloadError(f"Could not download {url} after {attempt} attempts: {e}") from e
            delay = 2 ** (attempt - 1)
            logger.warning(f"Attempt {attempt}/{max_retries} for {url} failed ({e}); retrying in {delay}s")
            time.sleep(delay)
        else:
            logger.info(f"Saved {url} to {target}")
            return target


def format_progress(progress: DownloadProgress) -> str:
    """
    Human-readable progress line.

    Example:
        >>> format_progress(DownloadProgress(52428800, 104857600, 50.0, 1048576))
        '50.0/100.0 MB (50.0%) at 1.0 MB/s'
    """
    done = progress.bytes_downloaded / MIB
    rate = progress.speed_bps / MIB
    if progress.total_bytes <= 0:
        return f"{done:.1f} MB at {rate:.1f} MB/s"
    return (
        f"{done:.1f}/{progress.total_bytes / MIB:.1f} MB "
        f"({progress.percentage:.1f}%) at {rate:.1f} MB/s"
    )


__all__ = [
    "DownloadProgress",
    "DownloadError",
    "download_tool",
    "format_progress",
]
