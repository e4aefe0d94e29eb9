"""
Device configurator — detect, enable, verify audio capture devices.

States advance strictly forward:

    UNPROBED → DETECTED → ENABLEMENT_ATTEMPTED → VERIFIED

Every pass reaches VERIFIED. Registry failures become warnings on the
report; nothing here aborts the host process. Verification always
re-queries the registry instead of trusting the detection snapshot.
"""

from __future__ import annotations

import logging

from bootstrapper.core.models.device import (
    AudioDevice,
    DeviceCategory,
    DeviceDetection,
    DeviceKind,
    DeviceReport,
    DeviceState,
)
from bootstrapper.core.services.devices.registry import (
    DeviceRegistry,
    DeviceRegistryError,
    remediation_for,
)

logger = logging.getLogger(__name__)


class DeviceConfigurator:
    """One configuration pass over a device registry."""

    def __init__(self, registry: DeviceRegistry, platform: str | None = None):
        self._registry = registry
        self._platform = platform or getattr(registry, "platform", "unknown")
        self._state = DeviceState.UNPROBED

    @property
    def state(self) -> DeviceState:
        return self._state

    def run(self) -> DeviceReport:
        report = DeviceReport(platform=self._platform)
        detected = self._detect(report)
        self._enable(report, detected)
        self._verify(report)
        return report

    # ── States ──────────────────────────────────────────────────

    def _detect(self, report: DeviceReport) -> list[AudioDevice]:
        devices = self._query(report, "detect")
        detection = DeviceDetection(
            virtual_cable=any(d.category == DeviceCategory.VIRTUAL_CABLE for d in devices),
            stereo_mix=any(d.category == DeviceCategory.STEREO_MIX for d in devices),
            stereo_mix_disabled=any(
                d.category == DeviceCategory.STEREO_MIX and not d.enabled for d in devices
            ),
            microphone=any(d.kind == DeviceKind.MICROPHONE for d in devices),
        )
        report.detection = detection

        if not detection.has_loopback:
            report.warnings.append(
                "No system-audio loopback device found (virtual cable or Stereo Mix); "
                "only microphone audio can be captured."
            )
        if not detection.microphone:
            report.warnings.append("No microphone detected.")

        self._advance(report, DeviceState.DETECTED)
        logger.info(
            "Detected %d capture device(s): cable=%s stereo_mix=%s microphone=%s",
            len(devices), detection.virtual_cable, detection.stereo_mix, detection.microphone,
        )
        return devices

    def _enable(self, report: DeviceReport, devices: list[AudioDevice]) -> None:
        for device in devices:
            if device.category != DeviceCategory.STEREO_MIX or device.enabled:
                continue
            report.enablement_attempts.append(device.name)
            try:
                self._registry.set_enabled(device, True)
                logger.info("Enabled '%s'", device.name)
            except DeviceRegistryError as e:
                report.warnings.append(f"Could not enable '{device.name}': {e}")
            except Exception as e:
                logger.debug("Unexpected enablement failure", exc_info=True)
                report.warnings.append(f"Could not enable '{device.name}': {e}")

        self._advance(report, DeviceState.ENABLEMENT_ATTEMPTED)

    def _verify(self, report: DeviceReport) -> None:
        devices = self._query(report, "verify")
        report.devices = devices

        for name in report.enablement_attempts:
            if any(d.name == name and not d.enabled for d in devices):
                report.warnings.append(f"'{name}' is still disabled.")

        if report.usable_count == 0:
            report.warnings.append("No usable audio input device.")

        if report.usable_count == 0 or report.warnings:
            report.remediation = remediation_for(self._platform)

        self._advance(report, DeviceState.VERIFIED)
        logger.info("Verified %d usable capture device(s)", report.usable_count)

    # ── Helpers ─────────────────────────────────────────────────

    def _query(self, report: DeviceReport, phase: str) -> list[AudioDevice]:
        try:
            return self._registry.list_devices()
        except DeviceRegistryError as e:
            report.warnings.append(f"Device query failed during {phase}: {e}")
        except Exception as e:
            logger.debug("Unexpected device query failure", exc_info=True)
            report.warnings.append(f"Device query failed during {phase}: {e}")
        return []

    def _advance(self, report: DeviceReport, state: DeviceState) -> None:
        logger.debug("Device state %s → %s", self._state.value, state.value)
        self._state = state
        report.state = state
