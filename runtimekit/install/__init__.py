"""
Runtime installation: installer variants, install plans and the orchestrator.
"""

from .installers import Installer, select_installer
from .orchestrator import InstallOrchestrator, InstallState, is_install_complete
from .plan import InstalledRuntime, InstallPlan

__all__ = [
    "Installer",
    "select_installer",
    "InstallOrchestrator",
    "InstallState",
    "is_install_complete",
    "InstalledRuntime",
    "InstallPlan",
]
