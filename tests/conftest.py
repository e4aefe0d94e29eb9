"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from bootstrapper.adapters.mock import MockAdapter
from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.models.context import PlatformFacts, RunContext, RunOptions

from tests.fakes import (
    MACOS,
    MOCKED_ADAPTERS,
    WINDOWS,
    FakeDeviceRegistry,
    FakeLiveness,
    FakeProbe,
    Machine,
    write_source_tree,
)


def _machine(tmp_path: Path, facts: PlatformFacts) -> Machine:
    install = tmp_path / "install"
    settings = InstallerSettings(
        install_dir=str(install),
        state_dir=str(tmp_path / "state"),
        applications_dir=str(tmp_path / "Applications"),
    )
    write_source_tree(install, settings)
    return Machine(
        settings=settings,
        facts=facts,
        probe=FakeProbe({"model-service"}),
        liveness=FakeLiveness(),
        devices=FakeDeviceRegistry(
            ["Microphone (Realtek Audio)", "CABLE Output (VB-Audio Virtual Cable)"],
            platform=facts.system,
        ),
        mocks={name: MockAdapter(adapter_name=name) for name in MOCKED_ADAPTERS},
    )


@pytest.fixture
def mac_machine(tmp_path: Path) -> Machine:
    return _machine(tmp_path, MACOS)


@pytest.fixture
def windows_machine(tmp_path: Path) -> Machine:
    return _machine(tmp_path, WINDOWS)


@pytest.fixture
def settings(tmp_path: Path) -> InstallerSettings:
    return InstallerSettings(
        install_dir=str(tmp_path / "install"),
        state_dir=str(tmp_path / "state"),
        applications_dir=str(tmp_path / "Applications"),
    )


@pytest.fixture
def mac_ctx(settings: InstallerSettings) -> RunContext:
    return RunContext.create(settings, RunOptions(interactive=False), MACOS)


@pytest.fixture
def windows_ctx(settings: InstallerSettings) -> RunContext:
    return RunContext.create(settings, RunOptions(interactive=False), WINDOWS)
