"""
Setup inputs.

Inputs come from four sources, highest precedence first:

1. Explicit options (CLI flags or keyword arguments of `setup_runtime`)
2. `INPUT_<NAME>` environment variables, as set by a CI runner
3. A YAML configuration file (default `.runtimekit.yaml`)
4. Built-in defaults

Example:
    >>> inputs = load_inputs({"ruby-version": "3.2"}, env={})
    >>> inputs.ruby_version, inputs.architecture
    ('3.2', 'x64')

Example .runtimekit.yaml:
    ruby-version: .ruby-version
    bundler: "2"
    bundler-cache: true
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from runtimekit.core.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path(".runtimekit.yaml")

INPUT_DEFAULTS: Dict[str, str] = {
    "architecture": "x64",
    "ruby-version": "default",
    "bundler": "default",
    "bundler-cache": "true",
    "working-directory": ".",
}

# Inputs without a default
OPTIONAL_INPUTS = ("cache-dir",)


@dataclass(frozen=True)
class SetupInputs:
    """
    Resolved setup inputs.

    Attributes:
        ruby_version: Version request ('3.2', 'jruby-9.4', 'default', ...)
        architecture: 'x64', 'x86' or 'default'
        bundler: Bundler version request, or 'none' to skip Bundler
        bundler_cache: Run 'bundle install' and cache the result
        working_directory: Project directory
        cache_dir: Local dependency cache directory (None for the default)
        after_setup_path_hook: Called after the runtime is on PATH and
            before Bundler runs, with platform, prefix, engine and version
    """

    ruby_version: str = INPUT_DEFAULTS["ruby-version"]
    architecture: str = INPUT_DEFAULTS["architecture"]
    bundler: str = INPUT_DEFAULTS["bundler"]
    bundler_cache: bool = True
    working_directory: Path = Path(INPUT_DEFAULTS["working-directory"])
    cache_dir: Optional[Path] = None
    after_setup_path_hook: Optional[Callable[..., None]] = field(
        default=None, compare=False, repr=False
    )


def load_yaml_config(config_file: Path, required: bool = False) -> Dict[str, Any]:
    """
    Read setup inputs from a YAML file.

    An absent optional file yields no inputs. Keys may use dashes or
    underscores ("ruby-version" or "ruby_version").

    Raises:
        InvalidInputError: The file is required but not found, does not
            parse, or is not a YAML mapping
    """
    if not config_file.is_file():
        if required:
            raise InvalidInputError(f"Input file not found: {config_file}")
        return {}

    logger.debug(f"Reading inputs from {config_file}")
    try:
        document = yaml.safe_load(config_file.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Invalid YAML in {config_file}: {e}") from e

    if document is None:
        return {}
    if not isinstance(document, dict):
        raise InvalidInputError(
            f"{config_file} holds a {type(document).__name__}; expected a mapping of inputs"
        )

    return {str(key).replace("_", "-"): value for key, value in document.items()}


def _env_input(env: Mapping[str, str], name: str) -> Optional[str]:
    for var in (f"INPUT_{name.upper()}", f"INPUT_{name.upper().replace('-', '_')}"):
        value = env.get(var, "").strip()
        if value:
            return value
    return None


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text == "true":
        return True
    if text == "false":
        return False
    raise InvalidInputError(f"Input {name} must be 'true' or 'false', got '{value}'")


def load_inputs(
    options: Optional[Mapping[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
    config_file: Optional[Path] = None,
) -> SetupInputs:
    """
    Merge explicit options, environment inputs, the config file and defaults.

    Args:
        options: Explicit inputs keyed by input name ('ruby-version', ...).
            None values are ignored. 'afterSetupPathHook' or
            'after-setup-path-hook' may hold a callable.
        env: Environment to read INPUT_* variables from (default: os.environ)
        config_file: YAML file; must exist when given explicitly

    Returns:
        SetupInputs

    Raises:
        InvalidInputError: If an input is malformed
    """
    env = os.environ if env is None else env
    options = {
        str(k).replace("_", "-"): v
        for k, v in (options or {}).items()
        if v is not None
    }

    if config_file is not None:
        config = load_yaml_config(Path(config_file), required=True)
    else:
        config = load_yaml_config(DEFAULT_CONFIG_FILE)

    values: Dict[str, Any] = {}
    for name in (*INPUT_DEFAULTS, *OPTIONAL_INPUTS):
        if name in options:
            values[name] = options[name]
        elif _env_input(env, name) is not None:
            values[name] = _env_input(env, name)
        elif config.get(name) is not None:
            values[name] = config[name]
        else:
            values[name] = INPUT_DEFAULTS.get(name)

    hook = options.get("afterSetupPathHook", options.get("after-setup-path-hook"))
    if hook is not None and not callable(hook):
        raise InvalidInputError("afterSetupPathHook must be callable")

    cache_dir = values["cache-dir"]
    return SetupInputs(
        ruby_version=str(values["ruby-version"]),
        architecture=str(values["architecture"]),
        bundler=str(values["bundler"]),
        bundler_cache=_parse_bool("bundler-cache", values["bundler-cache"]),
        working_directory=Path(str(values["working-directory"])),
        cache_dir=Path(str(cache_dir)) if cache_dir else None,
        after_setup_path_hook=hook,
    )


__all__ = [
    "DEFAULT_CONFIG_FILE",
    "INPUT_DEFAULTS",
    "SetupInputs",
    "load_yaml_config",
    "load_inputs",
]
