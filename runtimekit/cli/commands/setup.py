"""
Setup command implementation.

Installs a runtime and the project's gems, then publishes the runtime
prefix and environment changes to the CI runner.
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional

from runtimekit.core.environment import EnvironmentDelta
from runtimekit.setup_runtime import setup_runtime

logger = logging.getLogger(__name__)


def _options(args) -> dict:
    return {
        "ruby-version": args.ruby_version,
        "architecture": args.architecture,
        "bundler": args.bundler,
        "bundler-cache": args.bundler_cache,
        "working-directory": args.working_directory,
        "cache-dir": args.cache_dir,
    }


def _optional_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    value = env.get(name)
    return Path(value) if value else None


def publish(
    prefix: Path, environment: EnvironmentDelta, env: Mapping[str, str]
) -> None:
    """
    Publish the runtime prefix and environment changes.

    Writes to GITHUB_OUTPUT, GITHUB_ENV and GITHUB_PATH when the runner
    provides them, otherwise prints shell export lines.
    """
    output_file = _optional_path(env, "GITHUB_OUTPUT")
    if output_file is not None:
        with open(output_file, "a", encoding="utf-8") as f:
            f.write(f"ruby-prefix={prefix}\n")
    else:
        print(f"ruby-prefix={prefix}")

    env_file = _optional_path(env, "GITHUB_ENV")
    path_file = _optional_path(env, "GITHUB_PATH")
    if env_file is not None or path_file is not None:
        environment.write_github_files(env_file, path_file)
    elif environment:
        print(environment.to_shell())


def run(args) -> int:
    """
    Run the setup command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    logger.debug(f"Arguments: {args}")

    result = setup_runtime(_options(args), config_file=args.config)
    publish(result.prefix, result.environment, os.environ)

    if result.dependencies_installed and result.cache is not None:
        logger.info(f"Dependencies installed (cache key: {result.cache.key})")
    return 0
