"""
Subprocess execution for RuntimeKit.

All external commands (gem, bundle, ruby) go through `run`, which streams
nothing, captures stdout and reports the exit code. Callers decide whether
a non-zero exit is fatal.
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Result of a finished command."""

    stdout: str
    exit_code: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


def run(
    cmd: Union[str, Path],
    args: Sequence[str] = (),
    env: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    silent: bool = False,
) -> ProcessResult:
    """
    Run a command and capture its output.

    Args:
        cmd: Executable name or path
        args: Arguments
        env: Full environment for the child (inherits the current one if None)
        cwd: Working directory
        silent: Log the command line at debug instead of info level

    Returns:
        ProcessResult with stdout and exit code

    Raises:
        FileNotFoundError: If the executable does not exist
    """
    command = [str(cmd), *args]
    log = logger.debug if silent else logger.info
    log(f"[command] {' '.join(command)}")

    completed = subprocess.run(
        command,
        capture_output=True,
        text=True,
        env=dict(env) if env is not None else None,
        cwd=cwd,
    )

    if completed.stdout and not silent:
        logger.debug(completed.stdout.rstrip())
    if completed.returncode != 0 and completed.stderr:
        logger.debug(completed.stderr.rstrip())

    return ProcessResult(
        stdout=completed.stdout or "",
        exit_code=completed.returncode,
        stderr=completed.stderr or "",
    )


__all__ = ["ProcessResult", "run"]
