"""
Versions command implementation.

Lists the catalog of one engine on one platform, oldest first.
"""

import logging
import os

from runtimekit.core.exceptions import UnknownEngineError
from runtimekit.install.installers import select_installer
from runtimekit.setup_runtime import detect_runner_platform

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the versions command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    platform = args.platform or detect_runner_platform(os.environ)
    installer = select_installer(platform, args.engine)
    logger.debug(f"Using {installer.name} installer for {args.engine} on {platform}")

    catalog = installer.available_versions(platform, args.engine, args.architecture)
    if catalog is None:
        raise UnknownEngineError(args.engine, platform)

    for version in catalog.versions:
        print(version)
    return 0
