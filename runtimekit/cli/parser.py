"""
Command-line entry point for RuntimeKit (``rtkit``).

Each subcommand lives in ``runtimekit.cli.commands.<name>`` and exposes
``run(args) -> int``. Modules are imported only when their command runs.
"""

import argparse
import importlib
import logging
import sys
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import List, Optional

from runtimekit.core.exceptions import RuntimeKitError

try:
    __version__ = version("runtimekit")
except PackageNotFoundError:
    __version__ = "0.1.0"

logger = logging.getLogger(__name__)

ARCHITECTURE_CHOICES = ["x64", "x86", "default"]

COMMAND_MODULES = {
    "setup": "runtimekit.cli.commands.setup",
    "resolve": "runtimekit.cli.commands.resolve",
    "versions": "runtimekit.cli.commands.versions",
    "cache-key": "runtimekit.cli.commands.cache_key",
}

# verbose/quiet flag -> (level, record format)
LOG_STYLES = {
    "verbose": (logging.DEBUG, "%(levelname)s [%(name)s] %(message)s"),
    "quiet": (logging.ERROR, "%(levelname)s: %(message)s"),
    "normal": (logging.INFO, "%(message)s"),
}


def _add_target_options(parser: argparse.ArgumentParser, restrict_arch: bool = True) -> None:
    """Options shared by the read-only commands: --architecture and --platform."""
    parser.add_argument(
        "--architecture",
        choices=ARCHITECTURE_CHOICES if restrict_arch else None,
        default="x64",
        help="Runtime architecture (default: x64)",
    )
    parser.add_argument(
        "--platform",
        metavar="NAME",
        help="Runner image such as ubuntu-22.04; detected from the host when omitted",
    )


class CLI:
    """Builds the ``rtkit`` parser and routes parsed arguments to a command."""

    def __init__(self):
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="rtkit",
            description="RuntimeKit: install Ruby runtimes and cache their gems on CI runners",
            epilog='Run "rtkit COMMAND --help" for the options of a command',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        parser.add_argument("--version", action="version", version=f"RuntimeKit {__version__}")
        noise = parser.add_mutually_exclusive_group()
        noise.add_argument("-v", "--verbose", action="store_true", help="Log debug details")
        noise.add_argument("-q", "--quiet", action="store_true", help="Log errors only")
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="YAML file with setup inputs (default: ./.runtimekit.yaml)",
        )

        commands = parser.add_subparsers(dest="command", metavar="COMMAND", title="commands")

        setup = commands.add_parser(
            "setup",
            help="Install a runtime, then Bundler and the project's gems",
            description=(
                "Resolve the requested runtime, install it into the tool cache "
                "and run bundle install behind the dependency cache."
            ),
        )
        setup.add_argument(
            "--ruby-version",
            metavar="VERSION",
            help="Request such as 3.3, jruby-9.4, .ruby-version or default",
        )
        setup.add_argument("--architecture", choices=ARCHITECTURE_CHOICES, help="x64, x86 or default")
        setup.add_argument(
            "--bundler",
            metavar="VERSION",
            help="Bundler to install: a version, latest, default or none",
        )
        setup.add_argument(
            "--bundler-cache",
            choices=["true", "false"],
            help="Install gems and cache them (default: true)",
        )
        setup.add_argument("--working-directory", metavar="PATH", help="Project root (default: cwd)")
        setup.add_argument(
            "--cache-dir",
            metavar="PATH",
            help="Where cached gem archives are kept (default: ~/.runtimekit/cache)",
        )

        resolve = commands.add_parser(
            "resolve",
            help="Show which runtime a request selects",
            description="Print ENGINE-VERSION for a request such as 3.2 or truffleruby",
        )
        resolve.add_argument("request", help="Version request")
        _add_target_options(resolve)

        versions = commands.add_parser(
            "versions",
            help="List installable versions of an engine",
            description="Print every known version of an engine, oldest first",
        )
        versions.add_argument("engine", help="ruby, jruby, truffleruby or truffleruby+graalvm")
        _add_target_options(versions)

        cache_key = commands.add_parser(
            "cache-key",
            help="Show the gem cache key for a lock file",
            description="Print the key under which installed gems would be cached",
        )
        cache_key.add_argument("lock_file", type=Path, help="Path to Gemfile.lock or gems.locked")
        cache_key.add_argument(
            "--ruby",
            required=True,
            metavar="ENGINE-VERSION",
            help="Installed runtime, such as 3.3.5 or jruby-9.4.8.0",
        )
        _add_target_options(cache_key, restrict_arch=False)
        cache_key.add_argument(
            "--prefix",
            type=Path,
            metavar="PATH",
            help="Runtime prefix; head builds are asked for their revision",
        )

        return parser

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Parse args and execute the selected command.

        Returns:
            Process exit code: 0 on success, 1 on failure, 130 when interrupted
        """
        options = self.parse_args(args)
        self._setup_logging(options)

        if options.command is None:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch(options)
        except KeyboardInterrupt:
            logger.info("Interrupted")
            return 130
        except RuntimeKitError as e:
            logger.error(f"Error: {e}")
            return 1
        except Exception as e:
            logger.error(f"Unexpected failure in '{options.command}': {e}")
            if options.verbose:
                logger.exception("Traceback")
            return 1

    @staticmethod
    def _setup_logging(options: argparse.Namespace) -> None:
        style = "verbose" if options.verbose else "quiet" if options.quiet else "normal"
        level, fmt = LOG_STYLES[style]
        logging.basicConfig(level=level, format=fmt, force=True)

    @staticmethod
    def _dispatch(options: argparse.Namespace) -> int:
        module_name = COMMAND_MODULES.get(options.command)
        if module_name is None:
            logger.error(f"No handler for command '{options.command}'")
            return 1
        return importlib.import_module(module_name).run(options)


def main():
    sys.exit(CLI().run())


if __name__ == "__main__":
    main()
