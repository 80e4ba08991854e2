"""
Environment deltas.

Installers and setup steps describe the variables and PATH entries later
steps need as an `EnvironmentDelta` instead of mutating os.environ. The
caller decides how to apply them: to a child-process environment, to the
runner's GITHUB_ENV/GITHUB_PATH files, or as shell export lines.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)


@dataclass
class EnvironmentDelta:
    """
    Variables to export and PATH entries to prepend.

    Attributes:
        variables: Variables to set, later assignments win
        path_entries: Directories to prepend to PATH, first entry first
    """

    variables: Dict[str, str] = field(default_factory=dict)
    path_entries: List[str] = field(default_factory=list)

    def set(self, name: str, value: str) -> "EnvironmentDelta":
        self.variables[name] = value
        return self

    def prepend_path(self, *entries: str) -> "EnvironmentDelta":
        self.path_entries = [str(e) for e in entries] + [
            e for e in self.path_entries if e not in entries
        ]
        return self

    def merge(self, other: "EnvironmentDelta") -> "EnvironmentDelta":
        """Combine two deltas; `other` is applied after this one."""
        merged = EnvironmentDelta(dict(self.variables), list(self.path_entries))
        merged.variables.update(other.variables)
        merged.prepend_path(*other.path_entries)
        return merged

    def apply_to(self, env: Mapping[str, str]) -> Dict[str, str]:
        """
        Return a copy of env with this delta applied.

        Example:
            >>> delta = EnvironmentDelta({"MAKE": "make.exe"}, ["/r/bin"])
            >>> delta.apply_to({"PATH": "/usr/bin"})["PATH"]
            '/r/bin:/usr/bin'
        """
        result = dict(env)
        result.update(self.variables)
        if self.path_entries:
            current = result.get("PATH", "")
            parts = self.path_entries + ([current] if current else [])
            result["PATH"] = os.pathsep.join(parts)
        return result

    def write_github_files(
        self, env_file: Optional[Path], path_file: Optional[Path]
    ) -> None:
        """Append the delta to the runner's GITHUB_ENV and GITHUB_PATH files."""
        if env_file is not None and self.variables:
            with open(env_file, "a", encoding="utf-8") as f:
                for name, value in self.variables.items():
                    f.write(f"{name}={value}\n")

        if path_file is not None and self.path_entries:
            # Each line is prepended by the runner, so write in reverse order
            with open(path_file, "a", encoding="utf-8") as f:
                for entry in reversed(self.path_entries):
                    f.write(f"{entry}\n")

    def to_shell(self) -> str:
        """Render the delta as POSIX shell export lines."""
        lines = [f"export {name}='{value}'" for name, value in self.variables.items()]
        if self.path_entries:
            lines.append(
                f"export PATH='{os.pathsep.join(self.path_entries)}'{os.pathsep}\"$PATH\""
            )
        return "\n".join(lines)

    def __bool__(self) -> bool:
        return bool(self.variables or self.path_entries)


def pre_install_delta(
    platform: str, engine: str, env: Optional[Mapping[str, str]] = None
) -> EnvironmentDelta:
    """
    Variables the runner needs before a runtime is installed.

    Windows runners get a native HOME and a TMPDIR on the runner's temp
    drive; JRuby gets a Java version it supports.

    Example:
        >>> pre_install_delta("ubuntu-24.04", "jruby", {"JAVA_HOME_11_X64": "/jdk11"})
        EnvironmentDelta(variables={'JAVA_HOME': '/jdk11'}, path_entries=[])
    """
    env = os.environ if env is None else env
    delta = EnvironmentDelta()

    if platform.startswith("windows-"):
        if env.get("RUNNER_TEMP"):
            delta.set("TMPDIR", env["RUNNER_TEMP"])
        if env.get("HOMEDRIVE") and env.get("HOMEPATH"):
            delta.set("HOME", env["HOMEDRIVE"] + env["HOMEPATH"])
        # Keep the Windows PATH inside MSYS2 bash
        delta.set("MSYS2_PATH_TYPE", "inherit")
    elif engine == "jruby":
        java_home = None
        if platform == "ubuntu-24.04":
            java_home = env.get("JAVA_HOME_11_X64")
        elif platform.startswith("macos-"):
            java_home = (
                env.get("JAVA_HOME_8_X64")
                or env.get("JAVA_HOME_11_X64")
                or env.get("JAVA_HOME_11_arm64")
            )
        if java_home:
            logger.info(f"Setting JAVA_HOME={java_home}")
            delta.set("JAVA_HOME", java_home)

    return delta


__all__ = ["EnvironmentDelta", "pre_install_delta"]
