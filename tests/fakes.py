"""
Test doubles for full installer runs.

Full runs are driven against a fake machine: mock adapters for every
external tool, a probe answering from a set of satisfied capability
ids, a scripted credential liveness check, and an in-memory device
registry. Only in-process tasks run for real.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from bootstrapper.adapters.internal import InternalTaskAdapter
from bootstrapper.adapters.mock import MockAdapter
from bootstrapper.adapters.registry import AdapterRegistry
from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.engine.probe import CapabilityProbe
from bootstrapper.core.models.context import PlatformFacts, RunContext, RunOptions
from bootstrapper.core.models.device import AudioDevice
from bootstrapper.core.models.step import Capability, CapabilityKind, ProbeResult
from bootstrapper.core.plans import PlanServices
from bootstrapper.core.services.credential_gate import CredentialGate
from bootstrapper.core.services.devices.registry import DeviceRegistryError, make_device
from bootstrapper.core.services.github_api import ApiResponse

TOKEN = "ghp_" + "a" * 36

MACOS = PlatformFacts(
    system="macos", os_version="14.5", arch="arm64", free_space_gb=120.0, interactive=False,
)
WINDOWS = PlatformFacts(
    system="windows", os_version="10.0.22631", arch="amd64", free_space_gb=120.0,
    elevated=True, interactive=False,
)

# Adapters that touch the outside world; "internal" stays real
MOCKED_ADAPTERS = ("shell", "filesystem", "git", "http")


# ── Probe ───────────────────────────────────────────────────────


class FakeProbe(CapabilityProbe):
    """Answers host-facing capabilities from ``satisfied``.

    Directory, file and context capabilities are checked for real, so
    install-directory and credential behaviour stays genuine.
    """

    HOST_KINDS = (CapabilityKind.TOOL, CapabilityKind.COMMAND, CapabilityKind.SERVICE)

    def __init__(self, satisfied: set[str] | None = None):
        super().__init__()
        self.satisfied = set(satisfied or ())
        self.queries: list[str] = []

    def is_satisfied(self, capability: Capability, ctx: RunContext) -> ProbeResult:
        self.queries.append(capability.id)
        if capability.kind in self.HOST_KINDS:
            if capability.id in self.satisfied:
                return ProbeResult(
                    satisfied=True,
                    details={"path": f"/fake/bin/{capability.id}", "source": "path"},
                )
            return ProbeResult(satisfied=False, details={"checked": [capability.target]})
        return super().is_satisfied(capability, ctx)


# ── Devices ─────────────────────────────────────────────────────


class FakeDeviceRegistry:
    """In-memory device registry.

    Args:
        names: Device names; ``(name, enabled)`` tuples for disabled ones.
        enable_works: Whether ``set_enabled`` really flips the flag.
        enable_raises: Whether ``set_enabled`` raises DeviceRegistryError.
        list_raises: Whether ``list_devices`` raises DeviceRegistryError.
    """

    def __init__(
        self,
        names=(),
        platform: str = "windows",
        enable_works: bool = True,
        enable_raises: bool = False,
        list_raises: bool = False,
    ):
        self.platform = platform
        self.devices: list[AudioDevice] = []
        for entry in names:
            name, enabled = entry if isinstance(entry, tuple) else (entry, True)
            self.devices.append(make_device(name, enabled=enabled, device_id=f"id:{name}"))
        self.enable_works = enable_works
        self.enable_raises = enable_raises
        self.list_raises = list_raises
        self.list_calls = 0
        self.enable_calls: list[str] = []

    def list_devices(self) -> list[AudioDevice]:
        self.list_calls += 1
        if self.list_raises:
            raise DeviceRegistryError("device API unavailable")
        return [d.model_copy() for d in self.devices]

    def set_enabled(self, device: AudioDevice, enabled: bool) -> None:
        self.enable_calls.append(device.name)
        if self.enable_raises:
            raise DeviceRegistryError("Access denied")
        if self.enable_works:
            for d in self.devices:
                if d.name == device.name:
                    d.enabled = enabled


# ── Liveness and host services ──────────────────────────────────


class FakeLiveness:
    """Scripted repository metadata endpoint."""

    def __init__(self, status: int = 200, full_name: str = "gsnegovskiy/psycopilot"):
        self.status = status
        self.full_name = full_name
        self.calls: list[tuple[str, str]] = []

    def __call__(self, repository: str, token: str, timeout: float = 15.0) -> ApiResponse:
        self.calls.append((repository, token))
        if 200 <= self.status < 300:
            return ApiResponse(status=self.status, data={"full_name": self.full_name})
        return ApiResponse(status=self.status, error="error")


def fake_run(argv, **kwargs) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(argv, 0, stdout="/Library/Developer/CommandLineTools\n", stderr="")


@dataclass
class Machine:
    """Everything a full run needs, wired to fakes."""

    settings: InstallerSettings
    facts: PlatformFacts
    probe: FakeProbe
    liveness: FakeLiveness
    devices: FakeDeviceRegistry
    mocks: dict[str, MockAdapter] = field(default_factory=dict)
    service_ready: bool = True
    spawned: list[list[str]] = field(default_factory=list)

    def registry(self) -> AdapterRegistry:
        registry = AdapterRegistry()
        for adapter in self.mocks.values():
            registry.register(adapter)
        registry.register(InternalTaskAdapter())
        return registry

    def services(self) -> PlanServices:
        def gate(ctx: RunContext) -> CredentialGate:
            return CredentialGate(
                repository=ctx.settings.repository,
                interactive=False,
                liveness=self.liveness,
                environ={},
            )

        return PlanServices(
            credential_gate=gate,
            run=fake_run,
            spawn=self.spawned.append,
            wait_for_service=lambda url, **kw: self.service_ready,
            sleep=lambda _s: None,
        )

    def called_steps(self) -> list[str]:
        steps: list[str] = []
        for mock in self.mocks.values():
            steps += mock.called_steps()
        return steps

    def run(self, **option_overrides):
        from bootstrapper.core.use_cases.install import run_install

        values = {"token": TOKEN, "force": True, "interactive": False}
        values.update(option_overrides)
        return run_install(
            self.settings,
            RunOptions(**values),
            registry=self.registry(),
            probe=self.probe,
            services=self.services(),
            device_registry=self.devices,
            facts=self.facts,
            audit=False,
        )


def write_source_tree(root: Path, settings: InstallerSettings) -> None:
    """Files a fetched checkout is expected to contain."""
    for rel in [settings.app_entry, *settings.requirements]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("# placeholder\n")


