"""
Interface between the dependency cache and a runtime's package manager.

The cache manager drives an installer through four steps: ``prepare`` the
project before the cache is looked up, ``install`` every time, and ``clean``
after a restore from a fallback key so stale gems are not saved again.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class DependencyInstaller(ABC):
    """
    A package manager bound to one project directory.

    Subclasses implement detect, install, clean and get_name; prepare is
    optional.

    Example:
        class Pip(DependencyInstaller):
            def detect(self) -> bool:
                return (self.project_root / "requirements.txt").exists()

            def install(self):
                run("pip", ["install", "-r", "requirements.txt"], cwd=self.project_root)

            def clean(self):
                pass

            def get_name(self) -> str:
                return "pip"
    """

    def __init__(self, project_root: Path):
        """
        Args:
            project_root: Existing project directory, as a Path

        Raises:
            TypeError: project_root is a str or other non-Path value
            ValueError: project_root is missing on disk
        """
        if not isinstance(project_root, Path):
            raise TypeError(
                f"{type(self).__name__} needs a Path project root, not {type(project_root).__name__}"
            )
        if not project_root.is_dir():
            raise ValueError(f"No project directory at {project_root}")
        self.project_root = project_root

    @abstractmethod
    def detect(self) -> bool:
        """Whether the project has a manifest this installer understands."""

    def prepare(self) -> None:
        """Write project settings the install will need. No-op by default."""

    @abstractmethod
    def install(self) -> None:
        """
        Install the locked dependencies.

        Raises:
            DependencyInstallError: The package manager failed
        """

    @abstractmethod
    def clean(self) -> None:
        """
        Delete installed packages the lock file does not reference.

        Raises:
            DependencyInstallError: The package manager failed
        """

    @abstractmethod
    def get_name(self) -> str:
        """Short name used in logs, such as 'bundler'."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.project_root}>"


__all__ = ["DependencyInstaller"]
