"""Timing helper for long-running setup steps."""

import logging
import time
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def measure(title: str):
    """
    Log the start of a step and the seconds it took.

    Example:
        >>> with measure("Downloading Ruby"):
        ...     download()
    """
    logger.info(f"{title}...")
    start = time.time()
    try:
        yield
    finally:
        logger.info(f"{title} took {time.time() - start:.2f} seconds")
