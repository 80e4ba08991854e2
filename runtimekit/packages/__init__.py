"""
Dependency installers for installed runtimes.
"""

from .base import DependencyInstaller
from .bundler import (
    Bundler,
    Gemfiles,
    create_gemrc,
    detect_gemfiles,
    install_bundler,
    is_bundler2_default,
)

__all__ = [
    "DependencyInstaller",
    "Bundler",
    "Gemfiles",
    "create_gemrc",
    "detect_gemfiles",
    "install_bundler",
    "is_bundler2_default",
]
