"""
Windows device registry — PnP audio endpoints via PowerShell.

Capture endpoints are listed with ``Get-PnpDevice -Class AudioEndpoint``
and toggled with ``Enable-PnpDevice``/``Disable-PnpDevice``. Enabling
needs an elevated session; failures surface as DeviceRegistryError.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Callable

from bootstrapper.core.models.device import AudioDevice
from bootstrapper.core.services.devices.registry import DeviceRegistryError, make_device

logger = logging.getLogger(__name__)

_LIST_SCRIPT = (
    "Get-PnpDevice -Class AudioEndpoint -ErrorAction SilentlyContinue "
    "| Select-Object FriendlyName,Status,InstanceId "
    "| ConvertTo-Json -Compress"
)

# MMDevice IDs: {0.0.0.*} are render endpoints, {0.0.1.*} capture endpoints
_RENDER_MARKER = "{0.0.0."


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def parse_endpoints(raw: str) -> list[AudioDevice]:
    """Parse ConvertTo-Json output into capture devices.

    A single result is a JSON object, several are a list, none is empty
    output. Endpoints whose status is Unknown are not present and are
    dropped, as are render endpoints.
    """
    raw = raw.strip()
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DeviceRegistryError(f"Unreadable device list: {e}") from e

    items = data if isinstance(data, list) else [data]
    devices: list[AudioDevice] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        name = (item.get("FriendlyName") or "").strip()
        status = (item.get("Status") or "").strip()
        instance_id = item.get("InstanceId") or ""
        if not name or status.lower() == "unknown":
            continue
        if _RENDER_MARKER in instance_id:
            continue
        devices.append(make_device(name, enabled=status.upper() == "OK", device_id=instance_id))
    return devices


class WindowsDeviceRegistry:
    platform = "windows"

    def __init__(
        self,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        powershell: str = "powershell",
        timeout: int = 30,
    ):
        self._run = run
        self._powershell = powershell
        self._timeout = timeout

    def list_devices(self) -> list[AudioDevice]:
        return parse_endpoints(self._ps(_LIST_SCRIPT))

    def set_enabled(self, device: AudioDevice, enabled: bool) -> None:
        if not device.device_id:
            raise DeviceRegistryError(f"No instance id for '{device.name}'")
        verb = "Enable-PnpDevice" if enabled else "Disable-PnpDevice"
        logger.info("%s %s", verb, device.name)
        self._ps(f"{verb} -InstanceId {_ps_quote(device.device_id)} -Confirm:$false")

    def _ps(self, script: str) -> str:
        try:
            result = self._run(
                [self._powershell, "-NoProfile", "-NonInteractive", "-Command", script],
                capture_output=True,
                text=True,
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise DeviceRegistryError("PowerShell not found") from e
        except subprocess.TimeoutExpired as e:
            raise DeviceRegistryError(f"PowerShell timed out after {self._timeout}s") from e

        if result.returncode != 0:
            raise DeviceRegistryError(
                (result.stderr or "").strip() or f"PowerShell exited with code {result.returncode}"
            )
        return result.stdout or ""
