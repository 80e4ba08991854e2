"""
Resolve command implementation.

Prints the concrete engine-version a request resolves to.
"""

import logging
import os
from pathlib import Path

from runtimekit.install.installers import select_installer
from runtimekit.resolver import (
    ResolutionRequest,
    parse_engine_and_version,
    read_version_request,
    resolve,
)
from runtimekit.setup_runtime import detect_runner_platform

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the resolve command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    platform = args.platform or detect_runner_platform(os.environ)
    engine, pattern = parse_engine_and_version(
        read_version_request(args.request, Path.cwd())
    )
    request = ResolutionRequest(engine, pattern, args.architecture)

    installer = select_installer(platform, request.engine)
    catalog = installer.available_versions(
        platform, request.engine, request.architecture
    )
    version = resolve(request.engine, request.version_pattern, catalog, platform)

    print(f"{request.engine}-{version}")
    return 0
