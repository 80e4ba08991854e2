"""
Cache key command implementation.

Prints the dependency cache key a setup run would use for a lock file.
"""

import logging
import os
import shutil
from pathlib import Path

from runtimekit.cache.manager import CacheKeyBuilder
from runtimekit.install.plan import InstalledRuntime
from runtimekit.resolver import parse_engine_and_version
from runtimekit.setup_runtime import detect_runner_platform

logger = logging.getLogger(__name__)


def _default_prefix() -> Path:
    ruby = shutil.which("ruby")
    return Path(ruby).resolve().parent.parent if ruby else Path.cwd()


def run(args) -> int:
    """
    Run the cache-key command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    platform = args.platform or detect_runner_platform(os.environ)
    engine, version = parse_engine_and_version(args.ruby)
    runtime = InstalledRuntime(
        prefix=args.prefix or _default_prefix(),
        engine=engine,
        version=version,
        architecture=args.architecture,
    )

    builder = CacheKeyBuilder(runtime, platform, project_root=Path.cwd())
    record = builder.compute_key(args.lock_file)

    print(record.key)
    return 0
