"""
Tests for audio device configuration — classification, registries, state machine.
"""

import itertools
import json
import subprocess

import pytest

from bootstrapper.core.models.device import DeviceCategory, DeviceKind, DeviceState
from bootstrapper.core.services.devices import (
    DeviceConfigurator,
    DeviceRegistryError,
    NullDeviceRegistry,
    classify_device,
    registry_for,
)
from bootstrapper.core.services.devices.macos import MacDeviceRegistry, parse_profiler
from bootstrapper.core.services.devices.registry import REMEDIATION
from bootstrapper.core.services.devices.windows import WindowsDeviceRegistry, parse_endpoints

from tests.fakes import FakeDeviceRegistry

CABLE = "CABLE Output (VB-Audio Virtual Cable)"
STEREO_MIX = "Stereo Mix (Realtek(R) Audio)"
MIC = "Microphone (USB Audio Device)"


# ── Classification ──────────────────────────────────────────────────


class TestClassify:
    @pytest.mark.parametrize("name,category,kind", [
        (CABLE, DeviceCategory.VIRTUAL_CABLE, DeviceKind.SYSTEM_LOOPBACK),
        ("BlackHole 2ch", DeviceCategory.VIRTUAL_CABLE, DeviceKind.SYSTEM_LOOPBACK),
        (STEREO_MIX, DeviceCategory.STEREO_MIX, DeviceKind.SYSTEM_LOOPBACK),
        ("Стерео микшер (Realtek)", DeviceCategory.STEREO_MIX, DeviceKind.SYSTEM_LOOPBACK),
        (MIC, DeviceCategory.MICROPHONE, DeviceKind.MICROPHONE),
        ("MacBook Pro Microphone", DeviceCategory.MICROPHONE, DeviceKind.MICROPHONE),
        ("Headset (Jabra Evolve)", DeviceCategory.MICROPHONE, DeviceKind.MICROPHONE),
        ("Digital Input (S/PDIF)", DeviceCategory.OTHER, DeviceKind.MICROPHONE),
        ("Scarlett 2i2 USB", DeviceCategory.OTHER, DeviceKind.MICROPHONE),
    ])
    def test_classify(self, name, category, kind):
        assert classify_device(name) == (category, kind)


# ── State machine ───────────────────────────────────────────────────


class TestDeviceConfigurator:
    def test_starts_unprobed(self):
        configurator = DeviceConfigurator(FakeDeviceRegistry())
        assert configurator.state == DeviceState.UNPROBED

    @pytest.mark.parametrize(
        "present",
        [
            [name for name, keep in zip((CABLE, STEREO_MIX, MIC), mask) if keep]
            for mask in itertools.product([True, False], repeat=3)
        ],
    )
    def test_every_absence_combination_reaches_verified(self, present):
        configurator = DeviceConfigurator(FakeDeviceRegistry(present))
        report = configurator.run()

        assert configurator.state == DeviceState.VERIFIED
        assert report.state == DeviceState.VERIFIED
        assert report.detection.virtual_cable == (CABLE in present)
        assert report.detection.stereo_mix == (STEREO_MIX in present)
        assert report.detection.microphone == (MIC in present)
        assert report.usable_count == len(present)

    def test_zero_usable_gives_full_remediation(self):
        report = DeviceConfigurator(FakeDeviceRegistry([], platform="windows")).run()

        assert report.usable_count == 0
        assert not report.ok
        assert report.remediation == REMEDIATION["windows"]
        assert "No usable audio input device." in report.warnings

    def test_all_present_needs_no_remediation(self):
        report = DeviceConfigurator(FakeDeviceRegistry([CABLE, STEREO_MIX, MIC])).run()
        assert report.ok
        assert report.warnings == []
        assert report.remediation == []

    def test_disabled_stereo_mix_is_enabled(self):
        registry = FakeDeviceRegistry([(STEREO_MIX, False), MIC])
        report = DeviceConfigurator(registry).run()

        assert registry.enable_calls == [STEREO_MIX]
        assert report.enablement_attempts == [STEREO_MIX]
        assert report.detection.stereo_mix_disabled
        assert report.usable_count == 2
        assert report.warnings == []

    def test_enabled_devices_are_left_alone(self):
        registry = FakeDeviceRegistry([STEREO_MIX, (MIC, False)])
        DeviceConfigurator(registry).run()
        # only stereo mix is ever toggled
        assert registry.enable_calls == []

    def test_enable_failure_is_warning_with_remediation(self):
        registry = FakeDeviceRegistry([(STEREO_MIX, False), MIC], enable_raises=True)
        configurator = DeviceConfigurator(registry)
        report = configurator.run()

        assert configurator.state == DeviceState.VERIFIED
        assert any("Could not enable" in w for w in report.warnings)
        assert report.remediation
        assert report.usable_count == 1

    def test_verify_requeries_instead_of_trusting_enable(self):
        # set_enabled reports success but nothing changes
        registry = FakeDeviceRegistry([(STEREO_MIX, False)], enable_works=False)
        report = DeviceConfigurator(registry).run()

        assert registry.list_calls == 2
        assert f"'{STEREO_MIX}' is still disabled." in report.warnings
        assert report.usable_count == 0
        assert report.remediation

    def test_query_failure_never_raises(self):
        configurator = DeviceConfigurator(FakeDeviceRegistry(list_raises=True, platform="macos"))
        report = configurator.run()

        assert configurator.state == DeviceState.VERIFIED
        assert any("Device query failed during detect" in w for w in report.warnings)
        assert report.remediation == REMEDIATION["macos"]

    def test_generic_input_is_usable(self):
        report = DeviceConfigurator(FakeDeviceRegistry(["Scarlett 2i2 USB"])).run()
        assert report.usable_count == 1
        assert report.detection.microphone
        assert "No usable audio input device." not in report.warnings

    def test_disabled_generic_input_is_not_usable(self):
        report = DeviceConfigurator(FakeDeviceRegistry([("Scarlett 2i2 USB", False)])).run()
        assert report.usable_count == 0

    def test_report_to_dict(self):
        data = DeviceConfigurator(FakeDeviceRegistry([MIC])).run().to_dict()
        assert data["state"] == "verified"
        assert data["usable_count"] == 1
        assert data["ok"] is True


# ── Windows registry ────────────────────────────────────────────────


def _completed(stdout="", returncode=0, stderr=""):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=stderr)


class TestWindowsRegistry:
    ENDPOINTS = [
        {"FriendlyName": MIC, "Status": "OK", "InstanceId": "SWD\\MMDEVAPI\\{0.0.1.00000000}.{a}"},
        {"FriendlyName": STEREO_MIX, "Status": "Error", "InstanceId": "SWD\\MMDEVAPI\\{0.0.1.00000000}.{b}"},
        {"FriendlyName": "Speakers", "Status": "OK", "InstanceId": "SWD\\MMDEVAPI\\{0.0.0.00000000}.{c}"},
        {"FriendlyName": "Old Headset", "Status": "Unknown", "InstanceId": "SWD\\MMDEVAPI\\{0.0.1.00000000}.{d}"},
    ]

    def test_parse_endpoints_keeps_present_capture_devices(self):
        devices = parse_endpoints(json.dumps(self.ENDPOINTS))
        assert [d.name for d in devices] == [MIC, STEREO_MIX]
        assert devices[0].enabled
        assert not devices[1].enabled

    def test_parse_single_object(self):
        devices = parse_endpoints(json.dumps(self.ENDPOINTS[0]))
        assert len(devices) == 1

    def test_parse_empty_output(self):
        assert parse_endpoints("") == []

    def test_list_devices_runs_powershell(self):
        calls = []

        def run(argv, **kwargs):
            calls.append(argv)
            return _completed(json.dumps(self.ENDPOINTS))

        registry = WindowsDeviceRegistry(run=run)
        assert len(registry.list_devices()) == 2
        assert calls[0][0] == "powershell"
        assert "Get-PnpDevice" in calls[0][-1]

    def test_enable_uses_instance_id(self):
        calls = []

        def run(argv, **kwargs):
            calls.append(argv)
            return _completed()

        registry = WindowsDeviceRegistry(run=run)
        device = parse_endpoints(json.dumps(self.ENDPOINTS[1]))[0]
        registry.set_enabled(device, True)
        assert "Enable-PnpDevice" in calls[0][-1]
        assert device.device_id in calls[0][-1]

    def test_powershell_failure_raises_registry_error(self):
        registry = WindowsDeviceRegistry(run=lambda argv, **kw: _completed(returncode=1, stderr="Access denied"))
        with pytest.raises(DeviceRegistryError, match="Access denied"):
            registry.list_devices()

    def test_missing_powershell(self):
        def run(argv, **kwargs):
            raise FileNotFoundError("powershell")

        with pytest.raises(DeviceRegistryError, match="PowerShell not found"):
            WindowsDeviceRegistry(run=run).list_devices()


# ── macOS registry ──────────────────────────────────────────────────


class TestMacRegistry:
    PROFILE = {
        "SPAudioDataType": [{
            "_name": "coreaudio_device",
            "_items": [
                {"_name": "MacBook Pro Microphone", "coreaudio_device_input": 1},
                {"_name": "MacBook Pro Speakers", "coreaudio_device_output": 2},
                {"_name": "BlackHole 2ch", "coreaudio_device_input": 2, "coreaudio_device_output": 2},
            ],
        }],
    }

    def test_parse_profiler_inputs_only(self):
        devices = parse_profiler(json.dumps(self.PROFILE))
        assert [d.name for d in devices] == ["MacBook Pro Microphone", "BlackHole 2ch"]
        assert all(d.enabled for d in devices)

    def test_parse_profiler_bad_json(self):
        with pytest.raises(DeviceRegistryError):
            parse_profiler("{not json")

    def test_set_enabled_always_fails(self):
        registry = MacDeviceRegistry(run=lambda argv, **kw: _completed(json.dumps(self.PROFILE)))
        device = registry.list_devices()[0]
        with pytest.raises(DeviceRegistryError):
            registry.set_enabled(device, True)

    def test_generically_named_inputs_are_usable(self):
        profile = {
            "SPAudioDataType": [{
                "_name": "coreaudio_device",
                "_items": [
                    {"_name": "Blue Yeti Stereo", "coreaudio_device_input": 2},
                    {"_name": "Scarlett 2i2 USB", "coreaudio_device_input": 2},
                ],
            }],
        }
        registry = MacDeviceRegistry(run=lambda argv, **kw: _completed(json.dumps(profile)))
        report = DeviceConfigurator(registry).run()

        assert report.usable_count == 2
        assert report.ok
        assert "No usable audio input device." not in report.warnings


class TestRegistryFor:
    def test_platform_selection(self):
        assert isinstance(registry_for("windows"), WindowsDeviceRegistry)
        assert isinstance(registry_for("macos"), MacDeviceRegistry)
        assert isinstance(registry_for("linux"), NullDeviceRegistry)

    def test_null_registry_reaches_verified(self):
        configurator = DeviceConfigurator(NullDeviceRegistry("linux"))
        report = configurator.run()
        assert report.state == DeviceState.VERIFIED
        assert report.usable_count == 0
        assert report.remediation
