"""
End-to-end runtime setup.

`setup_runtime` runs the whole flow for one CI job:

1. Merge inputs (options, INPUT_* variables, config file, defaults)
2. Resolve the request against the installer's catalog
3. Install the runtime (or reuse the tool cache)
4. Install Bundler and, with bundler-cache, the project's gems through the
   dependency cache

Environment changes are collected into one `EnvironmentDelta` on the
result; nothing here modifies os.environ.

Example:
    >>> result = setup_runtime({"ruby-version": "2.0"})
    >>> result.prefix
    PosixPath('/opt/hostedtoolcache/Ruby/2.0.0-p648/x64')
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from runtimekit.cache.local import LocalCacheService
from runtimekit.cache.manager import DependencyCacheManager, DependencyCacheResult
from runtimekit.cache.service import CacheService
from runtimekit.config.inputs import SetupInputs, load_inputs
from runtimekit.core import process
from runtimekit.core.directory import get_runtimekit_home
from runtimekit.core.environment import EnvironmentDelta, pre_install_delta
from runtimekit.core.exceptions import RuntimeKitError
from runtimekit.core.platform import get_virtual_environment_name
from runtimekit.core.timing import measure
from runtimekit.install.installers import select_installer
from runtimekit.install.orchestrator import InstallOrchestrator
from runtimekit.install.plan import InstalledRuntime
from runtimekit.packages.bundler import (
    Bundler,
    create_gemrc,
    detect_gemfiles,
    install_bundler,
)
from runtimekit.resolver import (
    ResolutionRequest,
    parse_engine_and_version,
    read_version_request,
    resolve,
)

logger = logging.getLogger(__name__)


@dataclass
class SetupResult:
    """
    Outcome of a setup run.

    Attributes:
        platform: Platform name the runtime was set up for
        runtime: The installed runtime
        environment: Variables and PATH entries for later steps
        dependencies_installed: Whether 'bundle install' ran
        cache: Dependency cache outcome, when bundler-cache ran
        toolchain: Toolchain bootstrap step the platform still needs
    """

    platform: str
    runtime: InstalledRuntime
    environment: EnvironmentDelta = field(default_factory=EnvironmentDelta)
    dependencies_installed: bool = False
    cache: Optional[DependencyCacheResult] = None
    toolchain: Optional[str] = None

    @property
    def prefix(self) -> Path:
        return self.runtime.prefix


def detect_runner_platform(env: Mapping[str, str]) -> str:
    """
    Get the platform name of the current runner.

    Raises:
        RuntimeKitError: If the host cannot be mapped to a platform name
    """
    try:
        return get_virtual_environment_name(env)
    except RuntimeError as e:
        raise RuntimeKitError(str(e)) from e


def setup_runtime(
    options: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
    platform: Optional[str] = None,
    orchestrator: Optional[InstallOrchestrator] = None,
    cache_service: Optional[CacheService] = None,
    run: Callable[..., process.ProcessResult] = process.run,
) -> SetupResult:
    """
    Set up a runtime and, optionally, its dependencies.

    Args:
        options: Explicit inputs keyed by input name
        env: Environment of the job (default: os.environ)
        config_file: YAML config file
        platform: Platform name override (detected when None)
        orchestrator: Install orchestrator (default: a new one)
        cache_service: Dependency cache store (default: LocalCacheService)
        run: Subprocess primitive

    Returns:
        SetupResult

    Raises:
        RuntimeKitError: On the first fatal error
    """
    env = dict(os.environ if env is None else env)
    inputs = load_inputs(options, env=env, config_file=config_file)
    project_root = inputs.working_directory.resolve()

    platform = platform or detect_runner_platform(env)
    request_string = read_version_request(inputs.ruby_version, project_root)
    engine, pattern = parse_engine_and_version(request_string)
    request = ResolutionRequest(engine, pattern, inputs.architecture)

    installer = select_installer(platform, request.engine)
    catalog = installer.available_versions(
        platform, request.engine, request.architecture
    )
    version = resolve(request.engine, request.version_pattern, catalog, platform)
    logger.info(f"Resolved {request_string} to {request.engine}-{version}")

    environment = pre_install_delta(platform, request.engine, env)

    plan = installer.plan(
        platform, request.engine, request.architecture, version, env
    )
    if plan.toolchain:
        logger.info(f"Platform toolchain setup required: {plan.toolchain}")

    orchestrator = orchestrator or InstallOrchestrator()
    runtime = orchestrator.install(plan)
    environment = environment.merge(plan.environment)

    create_gemrc(runtime, run=run, env=environment.apply_to(env))

    if inputs.after_setup_path_hook is not None:
        inputs.after_setup_path_hook(
            platform=platform,
            prefix=runtime.prefix,
            engine=runtime.engine,
            version=runtime.version,
        )

    result = SetupResult(
        platform=platform,
        runtime=runtime,
        environment=environment,
        toolchain=plan.toolchain,
    )

    if inputs.bundler != "none":
        _setup_bundler(inputs, result, project_root, env, cache_service, run)

    return result


def _setup_bundler(
    inputs: SetupInputs,
    result: SetupResult,
    project_root: Path,
    env: Mapping[str, str],
    cache_service: Optional[CacheService],
    run: Callable[..., process.ProcessResult],
) -> None:
    runtime = result.runtime
    child_env = result.environment.apply_to(env)
    gemfiles = detect_gemfiles(project_root, env)

    with measure("Installing Bundler"):
        bundler_version = install_bundler(
            inputs.bundler,
            gemfiles.lock_file if gemfiles else None,
            runtime,
            run=run,
            env=child_env,
        )

    if not inputs.bundler_cache:
        return
    if gemfiles is None:
        logger.info(
            "Could not determine gemfile path, skipping 'bundle install' and caching"
        )
        return

    bundler = Bundler(
        project_root, gemfiles, runtime, bundler_version, env=child_env, run=run
    )
    if cache_service is None:
        cache_dir = inputs.cache_dir or get_runtimekit_home(env) / "cache"
        cache_service = LocalCacheService(cache_dir, root=project_root)

    manager = DependencyCacheManager(
        cache_service,
        bundler,
        runtime,
        result.platform,
        project_root=project_root,
        env=child_env,
        run=run,
    )
    with measure("bundle install"):
        result.cache = manager.ensure_dependencies(gemfiles.lock_file)
    result.dependencies_installed = True


__all__ = ["SetupResult", "detect_runner_platform", "setup_runtime"]
