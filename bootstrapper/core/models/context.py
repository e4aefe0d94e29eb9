"""
Run context — mutable state shared by the steps of one run.

The sequencer owns the context and passes it by reference to every
step. Steps write forward-looking fields (resolved runtime, tool
locations, credential) only after they succeed, so later steps can
trust whatever they find here.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, SecretStr

from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.models.credential import Credential
from bootstrapper.core.models.outcome import Outcome


class PlatformFacts(BaseModel):
    """Facts about the host, gathered once before the plan runs."""

    system: str                    # windows, macos, linux
    os_version: str = ""
    arch: str = ""
    free_space_gb: float | None = None
    elevated: bool = False
    interactive: bool = False

    @property
    def is_windows(self) -> bool:
        return self.system == "windows"

    @property
    def is_macos(self) -> bool:
        return self.system == "macos"


class RunOptions(BaseModel):
    """Per-run flags from the command line."""

    audio_only: bool = False
    install_virtual_audio: bool = True
    enable_wsl: bool = False
    runtime_version: str | None = None
    install_path: str | None = None
    token: SecretStr | None = None
    force: bool = False
    interactive: bool = True
    mock: bool = False


class WarningRecord(BaseModel):
    step: str
    message: str

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


def _new_run_id() -> str:
    return f"run-{uuid.uuid4().hex[:12]}"


class RunContext(BaseModel):
    """Run-scoped state, created by the sequencer's caller."""

    run_id: str = Field(default_factory=_new_run_id)
    settings: InstallerSettings = Field(default_factory=InstallerSettings)
    options: RunOptions = Field(default_factory=RunOptions)
    facts: PlatformFacts

    # ── Resolved by steps ────────────────────────────────────────
    install_path: str
    runtime_version: str
    python_path: str | None = None
    credential: Credential | None = None
    tools: dict[str, str] = Field(default_factory=dict)       # tool name → executable path
    artifacts: dict[str, str] = Field(default_factory=dict)   # step/artifact → path or value

    # ── Accumulated results ──────────────────────────────────────
    warnings: list[WarningRecord] = Field(default_factory=list)
    outcomes: list[Outcome] = Field(default_factory=list)
    failure: str | None = None

    @classmethod
    def create(
        cls,
        settings: InstallerSettings,
        options: RunOptions,
        facts: PlatformFacts,
    ) -> RunContext:
        """Build a fresh context with install path and runtime resolved from options."""
        install_path = options.install_path or settings.default_install_path()
        return cls(
            settings=settings,
            options=options,
            facts=facts,
            install_path=str(Path(os.path.expanduser(install_path))),
            runtime_version=options.runtime_version or settings.runtime_version,
        )

    # ── Derived paths ────────────────────────────────────────────

    @property
    def venv_path(self) -> str:
        return str(Path(self.install_path) / self.settings.venv_dir)

    @property
    def venv_python(self) -> str:
        if self.facts.is_windows:
            return str(Path(self.venv_path) / "Scripts" / "python.exe")
        return str(Path(self.venv_path) / "bin" / "python")

    def template_vars(self) -> dict[str, Any]:
        """Values available to capability and action templates."""
        home = os.path.expanduser("~")
        values: dict[str, Any] = {
            "home": home,
            "localappdata": os.environ.get(
                "LOCALAPPDATA", str(Path(home) / "AppData" / "Local"),
            ),
            "install_path": self.install_path,
            "venv_path": self.venv_path,
            "venv_python": self.venv_python,
            "runtime": self.runtime_version,
            "runtime_nodot": self.runtime_version.replace(".", ""),
            "python": self.python_path or "",
            "repository": self.settings.repository,
            "branch": self.settings.branch,
            "service_url": self.settings.service_url,
        }
        values.update(self.tools)
        return values

    # ── Mutation helpers ─────────────────────────────────────────

    def warn(self, step: str, message: str) -> None:
        self.warnings.append(WarningRecord(step=step, message=message))

    def record(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)

    def scrub_secrets(self) -> None:
        """Drop every copy of the credential held by the run."""
        self.credential = None
        self.options.token = None
