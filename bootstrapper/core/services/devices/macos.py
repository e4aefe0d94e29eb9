"""
macOS device registry — input devices from ``system_profiler``.

Core Audio exposes no per-device enablement switch, so every listed
device is enabled and ``set_enabled`` always fails.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable

from bootstrapper.core.models.device import AudioDevice
from bootstrapper.core.services.devices.registry import DeviceRegistryError, make_device

logger = logging.getLogger(__name__)


def parse_profiler(raw: str) -> list[AudioDevice]:
    """Input devices from ``system_profiler SPAudioDataType -json`` output."""
    try:
        data = json.loads(raw or "{}")
    except json.JSONDecodeError as e:
        raise DeviceRegistryError(f"Unreadable system_profiler output: {e}") from e

    devices: list[AudioDevice] = []
    for group in data.get("SPAudioDataType", []):
        for item in group.get("_items", []):
            name = item.get("_name", "")
            if name and item.get("coreaudio_device_input"):
                devices.append(make_device(name, enabled=True, device_id=name))
    return devices


class MacDeviceRegistry:
    platform = "macos"

    def __init__(
        self,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        timeout: int = 30,
    ):
        self._run = run
        self._timeout = timeout

    def list_devices(self) -> list[AudioDevice]:
        try:
            result = self._run(
                ["system_profiler", "SPAudioDataType", "-json"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            raise DeviceRegistryError(f"system_profiler failed: {e}") from e

        if result.returncode != 0:
            raise DeviceRegistryError(
                (result.stderr or "").strip() or f"system_profiler exited with code {result.returncode}"
            )
        return parse_profiler(result.stdout)

    def set_enabled(self, device: AudioDevice, enabled: bool) -> None:
        raise DeviceRegistryError(
            f"macOS does not allow toggling '{device.name}' programmatically"
        )
