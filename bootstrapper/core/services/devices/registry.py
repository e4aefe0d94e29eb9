"""
Device registry — the OS boundary for audio capture endpoints.

A registry enumerates capture devices and reads/writes an enablement
flag. Platform registries live in sibling modules; this module holds
the protocol, name-based classification, and remediation text.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from bootstrapper.core.models.device import AudioDevice, DeviceCategory, DeviceKind

logger = logging.getLogger(__name__)


class DeviceRegistryError(Exception):
    """A device query or mutation failed. Callers downgrade it to a warning."""


class DeviceRegistry(Protocol):
    platform: str

    def list_devices(self) -> list[AudioDevice]:
        """Current capture devices, freshly queried."""
        ...

    def set_enabled(self, device: AudioDevice, enabled: bool) -> None:
        """Flip the enablement flag. Raises DeviceRegistryError on failure."""
        ...


# ── Classification ──────────────────────────────────────────────

# First match wins.
_PATTERNS: tuple[tuple[DeviceCategory, re.Pattern[str]], ...] = (
    (
        DeviceCategory.VIRTUAL_CABLE,
        re.compile(r"cable output|vb-audio|blackhole|soundflower|voicemeeter|loopback audio", re.I),
    ),
    (
        DeviceCategory.STEREO_MIX,
        re.compile(r"stereo mix|what u hear|wave out mix|стерео ?микшер", re.I),
    ),
    (
        DeviceCategory.MICROPHONE,
        re.compile(r"microphone|\bmic\b|микрофон|headset|line in", re.I),
    ),
)

_KIND_BY_CATEGORY = {
    DeviceCategory.VIRTUAL_CABLE: DeviceKind.SYSTEM_LOOPBACK,
    DeviceCategory.STEREO_MIX: DeviceKind.SYSTEM_LOOPBACK,
    DeviceCategory.MICROPHONE: DeviceKind.MICROPHONE,
    # Registries only report capture endpoints, so an unmatched name is a
    # generic input such as a USB interface.
    DeviceCategory.OTHER: DeviceKind.MICROPHONE,
}


def classify_device(name: str) -> tuple[DeviceCategory, DeviceKind]:
    for category, pattern in _PATTERNS:
        if pattern.search(name):
            return category, _KIND_BY_CATEGORY[category]
    return DeviceCategory.OTHER, _KIND_BY_CATEGORY[DeviceCategory.OTHER]


def make_device(name: str, enabled: bool = True, device_id: str = "") -> AudioDevice:
    category, kind = classify_device(name)
    return AudioDevice(
        name=name, kind=kind, category=category, enabled=enabled, device_id=device_id,
    )


# ── Remediation ─────────────────────────────────────────────────

REMEDIATION: dict[str, list[str]] = {
    "windows": [
        "Open Sound settings > Recording, right-click the list, tick "
        "'Show Disabled Devices' and enable 'Stereo Mix'.",
        "Or install VB-Audio Virtual Cable (https://vb-audio.com/Cable/) and set "
        "'CABLE Input' as the playback device to capture system audio.",
        "Check that a microphone is connected and allowed under "
        "Settings > Privacy & security > Microphone.",
        "Re-run 'bootstrapper audio check' to verify.",
    ],
    "macos": [
        "Install a loopback driver: brew install --cask blackhole-2ch",
        "In Audio MIDI Setup create a Multi-Output Device combining your "
        "speakers and 'BlackHole 2ch'.",
        "Grant microphone access under System Settings > Privacy & Security > Microphone.",
        "Re-run 'bootstrapper audio check' to verify.",
    ],
}

_GENERIC_REMEDIATION = [
    "Connect a microphone or configure a loopback capture device in your OS sound settings.",
    "Re-run 'bootstrapper audio check' to verify.",
]


def remediation_for(platform: str) -> list[str]:
    return list(REMEDIATION.get(platform, _GENERIC_REMEDIATION))


class NullDeviceRegistry:
    """Registry for hosts without a supported device API."""

    def __init__(self, platform: str = "unknown"):
        self.platform = platform

    def list_devices(self) -> list[AudioDevice]:
        return []

    def set_enabled(self, device: AudioDevice, enabled: bool) -> None:
        raise DeviceRegistryError(f"Device enablement is not supported on {self.platform}")


def registry_for(system: str) -> DeviceRegistry:
    """Pick the registry for a normalized system name."""
    if system == "windows":
        from bootstrapper.core.services.devices.windows import WindowsDeviceRegistry

        return WindowsDeviceRegistry()
    if system == "macos":
        from bootstrapper.core.services.devices.macos import MacDeviceRegistry

        return MacDeviceRegistry()
    return NullDeviceRegistry(system)
