"""
Bundler integration for RuntimeKit.

Picks and installs a Bundler version compatible with the installed runtime,
then drives `bundle config`, `bundle lock`, `bundle install` and
`bundle clean` for the project's Gemfile.

Example:
    from runtimekit.packages.bundler import Bundler, detect_gemfiles, install_bundler

    gemfiles = detect_gemfiles(project_root)
    if gemfiles is not None:
        version = install_bundler("default", gemfiles.lock_file, runtime)
        bundler = Bundler(project_root, gemfiles, runtime, version, env=env)
        bundler.prepare()
        bundler.install()
"""

import logging
import os
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Tuple

from runtimekit.catalog.versions import is_head_version, version_components
from runtimekit.core import process
from runtimekit.core.exceptions import DependencyInstallError, InvalidInputError
from runtimekit.install.plan import InstalledRuntime
from runtimekit.packages.base import DependencyInstaller

logger = logging.getLogger(__name__)

BUNDLE_PATH = "vendor/bundle"

# (gemfile, lock file) pairs in detection order
GEMFILE_NAMES = (("Gemfile", "Gemfile.lock"), ("gems.rb", "gems.locked"))

Runner = Callable[..., process.ProcessResult]


@dataclass(frozen=True)
class Gemfiles:
    """A project's Gemfile. The lock file may not exist yet."""

    gemfile: Path
    lock_file: Path


def detect_gemfiles(
    project_root: Path, env: Optional[Mapping[str, str]] = None
) -> Optional[Gemfiles]:
    """
    Find the project's Gemfile.

    `$BUNDLE_GEMFILE` wins when set, then `Gemfile`, then `gems.rb`.

    Returns:
        Gemfiles, or None if the project has no Gemfile

    Raises:
        InvalidInputError: If $BUNDLE_GEMFILE points to a missing file
    """
    env = os.environ if env is None else env
    bundle_gemfile = env.get("BUNDLE_GEMFILE")
    if bundle_gemfile:
        gemfile = project_root / bundle_gemfile
        if not gemfile.is_file():
            raise InvalidInputError(
                f"$BUNDLE_GEMFILE is set to {bundle_gemfile} but does not exist"
            )
        return Gemfiles(gemfile, Path(f"{gemfile}.lock"))

    for gemfile_name, lock_name in GEMFILE_NAMES:
        gemfile = project_root / gemfile_name
        if gemfile.is_file():
            return Gemfiles(gemfile, project_root / lock_name)

    return None


def read_bundled_with(lock_file: Path) -> Optional[str]:
    """
    Read the Bundler version recorded under 'BUNDLED WITH' in a lock file.

    Returns:
        Version string, or None if the file or section is missing
    """
    if not lock_file.is_file():
        return None

    lines = lock_file.read_text(encoding="utf-8").splitlines()
    for i, line in enumerate(lines):
        if line.strip() == "BUNDLED WITH" and i + 1 < len(lines):
            version = lines[i + 1].strip()
            if version:
                logger.info(
                    f"Using Bundler {version} from {lock_file.name} "
                    f"BUNDLED WITH {version}"
                )
                return version
    return None


def _numeric_prefix(version: str, length: int = 2) -> Tuple[int, ...]:
    numbers: List[int] = []
    for component in version_components(version)[:length]:
        if not component.isdigit():
            break
        numbers.append(int(component))
    return tuple(numbers)


def is_bundler2_default(engine: str, version: str) -> bool:
    """Check whether a runtime ships Bundler 2 as its default Bundler."""
    if is_head_version(version):
        return True
    # truffleruby+graalvm follows truffleruby
    minimum = {"ruby": (2, 7), "truffleruby": (21, 0), "jruby": (9, 3)}.get(
        engine.split("+")[0]
    )
    if minimum is None:
        return False
    return _numeric_prefix(version) >= minimum


def resolve_bundler_version(
    requested: str, lock_file: Optional[Path], engine: str, version: str
) -> str:
    """
    Turn the bundler input into a version requirement for this runtime.

    'default' and 'Gemfile.lock' read the lock file, falling back to
    'latest', which means Bundler 2. Old runtimes are forced to Bundler 1.

    Raises:
        InvalidInputError: If the requested version does not start with a digit
    """
    bundler_version = requested
    if bundler_version in ("default", "Gemfile.lock"):
        bundled_with = read_bundled_with(lock_file) if lock_file else None
        bundler_version = bundled_with or "latest"

    if bundler_version == "latest":
        bundler_version = "2"

    if not re.match(r"^\d+", bundler_version):
        raise InvalidInputError(f"Cannot parse bundler input: {bundler_version}")

    if engine == "ruby" and re.match(r"^(1\.|2\.[012])", version):
        logger.info("Bundler 2 requires Ruby 2.3+, using Bundler 1 on Ruby <= 2.2")
        bundler_version = "1"
    elif engine == "ruby" and re.match(r"^2\.3\.", version):
        logger.info("Ruby 2.3 has a bug with Bundler 2, using Bundler 1 instead")
        bundler_version = "1"
    elif engine == "jruby" and re.match(r"^(1\.|9\.[01]\.)", version):
        logger.info("JRuby < 9.2 requires Bundler 1")
        bundler_version = "1"

    return bundler_version


def _executable(name: str, path: Optional[str]) -> str:
    return shutil.which(name, path=path) or name


def _gem(runtime: InstalledRuntime) -> str:
    return _executable("gem", str(runtime.bin_dir))


def _run_gem(
    runtime: InstalledRuntime,
    args: List[str],
    run: Runner,
    env: Optional[Mapping[str, str]],
    silent: bool = False,
) -> process.ProcessResult:
    try:
        return run(_gem(runtime), args, env=env, silent=silent)
    except OSError as e:
        raise DependencyInstallError(
            f"Failed to run gem {args[0]} for {runtime.engine}-{runtime.version}: {e}"
        ) from e


def gem_is_v2_or_later(
    runtime: InstalledRuntime,
    run: Runner = process.run,
    env: Optional[Mapping[str, str]] = None,
) -> bool:
    """
    Check the RubyGems version of an installed runtime.

    Raises:
        DependencyInstallError: If `gem` cannot be started
    """
    result = _run_gem(runtime, ["-v"], run, env, silent=True)
    return not re.match(r"^[01]\.", result.stdout.strip())


def bundler_install_args(
    bundler_version: str, engine: str, version: str, gem_v2: bool
) -> List[str]:
    """Build the `gem install bundler` arguments for a runtime."""
    args = ["install", "bundler", "-v", f"~> {bundler_version}", "--force"]

    if engine == "jruby" and version.startswith("9.2."):
        logger.info("JRuby 9.2 requires a maximum of Bundler 2.3")
        args += ["-v", "< 2.4"]

    if gem_v2:
        args.append("--no-document")
    else:
        args += ["--no-rdoc", "--no-ri"]

    if version.startswith("1.8.7"):
        # Keep the patched Bundler shipped in the 1.8.7 package
        args.append("--conservative")

    return args


def install_bundler(
    requested: str,
    lock_file: Optional[Path],
    runtime: InstalledRuntime,
    run: Runner = process.run,
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Install Bundler into a runtime unless the runtime already ships it.

    Returns:
        The Bundler version requirement used

    Raises:
        InvalidInputError: If the bundler input cannot be parsed
        DependencyInstallError: If `gem install` fails
    """
    engine, version = runtime.engine, runtime.version
    bundler_version = resolve_bundler_version(requested, lock_file, engine, version)

    if (
        is_head_version(version)
        and is_bundler2_default(engine, version)
        and bundler_version.startswith("2")
    ):
        logger.info(f"Using Bundler 2 shipped with {engine}-{version}")
        return bundler_version
    if (
        engine == "truffleruby"
        and not is_head_version(version)
        and bundler_version.startswith("1")
    ):
        logger.info(f"Using Bundler 1 shipped with {engine}")
        return bundler_version

    args = bundler_install_args(
        bundler_version, engine, version, gem_is_v2_or_later(runtime, run, env)
    )
    result = _run_gem(runtime, args, run, env)
    if not result.ok:
        raise DependencyInstallError(
            f"Failed to install Bundler {bundler_version} "
            f"(exit code {result.exit_code}): {result.stderr.strip()}"
        )
    return bundler_version


def create_gemrc(
    runtime: InstalledRuntime,
    run: Runner = process.run,
    env: Optional[Mapping[str, str]] = None,
    home: Optional[Path] = None,
) -> Optional[Path]:
    """
    Disable documentation generation for `gem install` unless the user
    already has a ~/.gemrc.

    RubyGems 0.x and 1.x only understand `--no-rdoc --no-ri`.

    Returns:
        Path of the created file, or None if one already existed

    Raises:
        DependencyInstallError: If `gem` cannot be started
    """
    gemrc = (home or Path.home()) / ".gemrc"
    if gemrc.exists():
        return None
    flags = "--no-document" if gem_is_v2_or_later(runtime, run, env) else "--no-rdoc --no-ri"
    gemrc.write_text(f"gem: {flags}{os.linesep}", encoding="utf-8")
    logger.debug(f"Created {gemrc} with '{flags}'")
    return gemrc


class Bundler(DependencyInstaller):
    """
    Bundler driver for one project.

    Attributes:
        gemfiles: The project's Gemfile and lock file
        runtime: Runtime whose `bundle` executable is used
        bundler_version: Bundler version requirement in use
        env: Environment for child processes (PATH must reach the runtime)
        bundle_path: Install directory relative to project_root
    """

    def __init__(
        self,
        project_root: Path,
        gemfiles: Gemfiles,
        runtime: InstalledRuntime,
        bundler_version: str,
        env: Optional[Mapping[str, str]] = None,
        run: Runner = process.run,
        bundle_path: str = BUNDLE_PATH,
    ):
        super().__init__(project_root)
        self.gemfiles = gemfiles
        self.runtime = runtime
        self.bundler_version = bundler_version
        self.env: Dict[str, str] = dict(os.environ if env is None else env)
        self.run = run
        self.bundle_path = bundle_path

    def detect(self) -> bool:
        return self.gemfiles.gemfile.is_file()

    def get_name(self) -> str:
        return "bundler"

    @property
    def bundle(self) -> str:
        return _executable("bundle", self.env.get("PATH"))

    def _config_env(self) -> Dict[str, str]:
        env = dict(self.env)
        if self.bundler_version.startswith("1") and is_bundler2_default(
            self.runtime.engine, self.runtime.version
        ):
            # Pin Bundler 1 until the lock file records it
            logger.info(
                f"Setting BUNDLER_VERSION={self.bundler_version} for "
                "'bundle config|lock' to ensure Bundler 1 is used"
            )
            env["BUNDLER_VERSION"] = self.bundler_version
        return env

    def _bundle(self, args: List[str], env: Optional[Mapping[str, str]] = None) -> None:
        try:
            result = self.run(
                self.bundle, args, env=env or self.env, cwd=self.project_root
            )
        except OSError as e:
            raise DependencyInstallError(f"Failed to run bundle {args[0]}: {e}") from e
        if not result.ok:
            raise DependencyInstallError(
                f"bundle {' '.join(args)} failed with exit code {result.exit_code}: "
                f"{result.stderr.strip()}"
            )

    def prepare(self) -> None:
        """
        Point Bundler at the cached install directory and make sure a lock
        file exists.
        """
        env = self._config_env()
        # Absolute, so it stays under the project and not beside the gemfile
        install_path = (self.project_root / self.bundle_path).resolve()
        self._bundle(["config", "--local", "path", str(install_path)], env)

        if self.gemfiles.lock_file.exists():
            self._bundle(["config", "--local", "deployment", "true"], env)
        else:
            # Generate the lock file so it can be hashed for the cache key
            self._bundle(["lock"], env)

    def install(self) -> None:
        self._bundle(["install", "--jobs", "4"])

    def clean(self) -> None:
        self._bundle(["clean"])


__all__ = [
    "BUNDLE_PATH",
    "Gemfiles",
    "detect_gemfiles",
    "read_bundled_with",
    "is_bundler2_default",
    "resolve_bundler_version",
    "gem_is_v2_or_later",
    "bundler_install_args",
    "install_bundler",
    "create_gemrc",
    "Bundler",
]
