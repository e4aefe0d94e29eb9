"""
Platform plans — one static step list per supported OS.

    build_plan("macos", settings)    → Homebrew plan
    build_plan("windows", settings)  → winget plan
"""

from __future__ import annotations

from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.engine.plan import InstallationPlan
from bootstrapper.core.plans.common import PlanServices
from bootstrapper.core.plans.macos import build_macos_plan
from bootstrapper.core.plans.windows import build_windows_plan

_BUILDERS = {
    "macos": build_macos_plan,
    "windows": build_windows_plan,
}

SUPPORTED_PLATFORMS = tuple(_BUILDERS)


class UnsupportedPlatformError(Exception):
    """No installation plan exists for this operating system."""


def build_plan(
    system: str,
    settings: InstallerSettings,
    services: PlanServices | None = None,
) -> InstallationPlan:
    builder = _BUILDERS.get(system)
    if builder is None:
        raise UnsupportedPlatformError(
            f"No installation plan for '{system}' "
            f"(supported: {', '.join(SUPPORTED_PLATFORMS)})"
        )
    return builder(settings, services)


__all__ = [
    "PlanServices",
    "SUPPORTED_PLATFORMS",
    "UnsupportedPlatformError",
    "build_plan",
]
