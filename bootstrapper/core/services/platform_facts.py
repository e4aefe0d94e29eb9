"""
Platform facts — read-only detection of the host.

Gathered once before a run: operating system, version, architecture,
free space on the install volume, elevation, and whether a human is
at the keyboard.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import shutil
import sys
from pathlib import Path

from bootstrapper.core.models.context import PlatformFacts

logger = logging.getLogger(__name__)

_SYSTEMS = {"darwin": "macos", "windows": "windows", "linux": "linux"}


def normalize_system(name: str) -> str:
    """Map ``platform.system()`` output (or a CLI choice) to our names."""
    key = name.strip().lower()
    return _SYSTEMS.get(key, key)


def version_tuple(version: str) -> tuple[int, ...]:
    """'14.2.1' → (14, 2, 1). A part without leading digits stops the parse."""
    parts: list[int] = []
    for piece in version.split("."):
        match = re.match(r"\d+", piece)
        if not match:
            break
        parts.append(int(match.group()))
    return tuple(parts)


def free_space_gb(path: str) -> float | None:
    """Free space on the volume that holds ``path`` (or its nearest existing parent)."""
    candidate = Path(path).expanduser()
    while not candidate.exists():
        if candidate.parent == candidate:
            return None
        candidate = candidate.parent
    try:
        return round(shutil.disk_usage(candidate).free / (1024 ** 3), 2)
    except OSError as e:
        logger.debug("disk_usage failed for %s: %s", candidate, e)
        return None


def is_elevated() -> bool:
    if hasattr(os, "geteuid"):
        return os.geteuid() == 0
    try:
        import ctypes

        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def _os_version(system: str) -> str:
    if system == "macos":
        return platform.mac_ver()[0]
    if system == "windows":
        return platform.version()
    return platform.release()


def detect_platform_facts(
    install_path: str,
    interactive: bool | None = None,
) -> PlatformFacts:
    """Probe the current host."""
    system = normalize_system(platform.system())
    facts = PlatformFacts(
        system=system,
        os_version=_os_version(system),
        arch=platform.machine().lower(),
        free_space_gb=free_space_gb(install_path),
        elevated=is_elevated(),
        interactive=sys.stdin.isatty() if interactive is None else interactive,
    )
    logger.debug(
        "Platform: %s %s (%s), free=%sGB, elevated=%s",
        facts.system, facts.os_version, facts.arch, facts.free_space_gb, facts.elevated,
    )
    return facts
