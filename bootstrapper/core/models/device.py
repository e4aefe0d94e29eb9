"""
Audio device models — what the device registry reports.

Device snapshots are always re-derived by querying the registry.
A report is the end state of one device configuration pass.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class DeviceKind(str, Enum):
    MICROPHONE = "microphone"
    SYSTEM_LOOPBACK = "system_loopback"
    UNKNOWN = "unknown"


class DeviceCategory(str, Enum):
    """Finer class used for detection. Each maps to one DeviceKind."""

    VIRTUAL_CABLE = "virtual_cable"
    STEREO_MIX = "stereo_mix"
    MICROPHONE = "microphone"
    OTHER = "other"


class AudioDevice(BaseModel):
    """A capture endpoint as seen by the OS."""

    name: str
    kind: DeviceKind = DeviceKind.UNKNOWN
    category: DeviceCategory = DeviceCategory.OTHER
    enabled: bool = True
    device_id: str = ""         # registry-specific handle used for enablement

    @property
    def usable(self) -> bool:
        return self.enabled and self.kind != DeviceKind.UNKNOWN


class DeviceState(str, Enum):
    UNPROBED = "unprobed"
    DETECTED = "detected"
    ENABLEMENT_ATTEMPTED = "enablement_attempted"
    VERIFIED = "verified"


class DeviceDetection(BaseModel):
    """Which device classes were found, independently of each other."""

    virtual_cable: bool = False
    stereo_mix: bool = False
    stereo_mix_disabled: bool = False
    microphone: bool = False

    @property
    def has_loopback(self) -> bool:
        return self.virtual_cable or self.stereo_mix


class DeviceReport(BaseModel):
    """End state of a device configuration pass."""

    state: DeviceState = DeviceState.UNPROBED
    platform: str = ""
    detection: DeviceDetection = Field(default_factory=DeviceDetection)
    enablement_attempts: list[str] = Field(default_factory=list)
    devices: list[AudioDevice] = Field(default_factory=list)   # verified snapshot
    warnings: list[str] = Field(default_factory=list)
    remediation: list[str] = Field(default_factory=list)

    @property
    def usable_count(self) -> int:
        return sum(1 for d in self.devices if d.usable)

    @property
    def ok(self) -> bool:
        return self.state == DeviceState.VERIFIED and self.usable_count > 0

    def to_dict(self) -> dict:
        data = self.model_dump(mode="json")
        data["usable_count"] = self.usable_count
        data["ok"] = self.ok
        return data
