"""Audio capture device configuration."""

from bootstrapper.core.services.devices.registry import (
    DeviceRegistry,
    DeviceRegistryError,
    NullDeviceRegistry,
    classify_device,
    registry_for,
)
from bootstrapper.core.services.devices.state_machine import DeviceConfigurator

__all__ = [
    "DeviceConfigurator",
    "DeviceRegistry",
    "DeviceRegistryError",
    "NullDeviceRegistry",
    "classify_device",
    "registry_for",
]
