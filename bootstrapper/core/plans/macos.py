"""
macOS plan — Homebrew-based installation.

Order:
    preflight → install dir → credential → Command Line Tools → Homebrew
    → git → source → Python → venv → pip → brew packages → requirements
    → helper binary → virtual audio → artifacts → model service
"""

from __future__ import annotations

import re
import shlex
from pathlib import Path

from bootstrapper.adapters.internal import TaskFailed
from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.engine.plan import InstallationPlan
from bootstrapper.core.models.action import Action, Receipt
from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.step import Capability, CapabilityKind, ProbeResult, Step
from bootstrapper.core.plans import common
from bootstrapper.core.plans.common import FATAL, WARN, PlanServices, StartCommand
from bootstrapper.core.services import artifacts

HOMEBREW_INSTALL_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
BREW_PREFIXES = ("/opt/homebrew", "/usr/local")


def _brew(ctx: RunContext) -> str:
    return ctx.tools.get("brew", "brew")


def _brew_fallbacks(executable: str) -> tuple[str, ...]:
    return tuple(f"{prefix}/bin/{executable}" for prefix in BREW_PREFIXES)


# ── Command Line Tools ──────────────────────────────────────────


def clt_step(services: PlanServices) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        settings = ctx.settings

        def install_and_wait() -> str:
            # Opens the system installer dialog; returns non-zero when an
            # install is already pending, so the exit code is not checked.
            services.run(["xcode-select", "--install"], capture_output=True, text=True, timeout=60)
            waited = 0
            while waited < settings.clt_wait_seconds:
                probe = services.run(["xcode-select", "-p"], capture_output=True, text=True, timeout=20)
                if probe.returncode == 0:
                    return probe.stdout.strip()
                services.sleep(settings.clt_poll_interval)
                waited += settings.clt_poll_interval
            raise TaskFailed(
                f"Command Line Tools not installed after {settings.clt_wait_seconds}s. "
                "Finish the installer dialog, then re-run."
            )

        return common.task_action("xcode_clt", "Install Xcode Command Line Tools", install_and_wait)

    return Step(
        name="xcode_clt",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="xcode-clt", kind=CapabilityKind.COMMAND, argv=("xcode-select", "-p"),
            description="Xcode Command Line Tools",
        ),
        description="Compiler toolchain required by Homebrew",
    )


# ── Homebrew and brew-managed tools ─────────────────────────────


def homebrew_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.action(
            "homebrew", "shell", "Install Homebrew",
            command=f'/bin/bash -c "$(curl -fsSL {HOMEBREW_INSTALL_URL})"',
            env={"NONINTERACTIVE": "1"},
            timeout=ctx.settings.step_timeout,
            progress=True,
        )

    return Step(
        name="homebrew",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="brew", kind=CapabilityKind.TOOL, target="brew",
            fallback_paths=_brew_fallbacks("brew"), description="Homebrew",
        ),
        on_satisfied=common.record_tool("brew"),
        requires=("xcode_clt",),
        verify=True,
        description="System package manager",
    )


def git_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.shell_action(ctx, "git", "Install git", [_brew(ctx), "install", "git"], progress=True)

    return Step(
        name="git",
        build_action=build,
        policy=WARN,
        capability=Capability(
            id="git", kind=CapabilityKind.TOOL, target="git",
            fallback_paths=_brew_fallbacks("git"), description="git",
        ),
        on_satisfied=common.record_tool("git"),
        requires=("homebrew",),
        verify=True,
        description="git for cloning (archive download is the fallback)",
    )


def python_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.shell_action(
            ctx, "python_runtime", f"Install Python {ctx.runtime_version}",
            [_brew(ctx), "install", f"python@{ctx.runtime_version}"],
            progress=True,
        )

    def remember(ctx: RunContext, result: ProbeResult, _receipt: Receipt | None) -> None:
        ctx.python_path = result.path

    return Step(
        name="python_runtime",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="python", kind=CapabilityKind.TOOL, target="python{runtime}",
            fallback_paths=tuple(
                f"{prefix}/opt/python@{{runtime}}/bin/python{{runtime}}" for prefix in BREW_PREFIXES
            ),
            description="Python runtime",
        ),
        on_satisfied=remember,
        requires=("homebrew",),
        verify=True,
        description="Python at the selected version",
    )


def _step_name(prefix: str, package: str) -> str:
    return prefix + re.sub(r"[^a-z0-9]+", "_", package.lower()).strip("_")


def brew_package_step(package: str) -> Step:
    name = _step_name("brew_", package)

    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.shell_action(ctx, name, f"Install {package}", [_brew(ctx), "install", package], progress=True)

    return Step(
        name=name,
        build_action=build,
        policy=WARN,
        capability=Capability(
            id=f"brew:{package}", kind=CapabilityKind.COMMAND,
            argv=("{brew}", "list", "--versions", package), description=package,
        ),
        requires=("homebrew",),
        description=f"Homebrew package {package}",
    )


# ── Helper binary and virtual audio ─────────────────────────────


def helper_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        path = shlex.quote(ctx.artifacts["helper"])
        return common.action(
            "prepare_helper", "shell", "Prepare audio capture helper",
            command=(
                f"chmod +x {path}"
                f" && (xattr -d com.apple.quarantine {path} 2>/dev/null || true)"
                f" && codesign --force --sign - {path}"
            ),
            timeout=120,
        )

    return Step(
        name="prepare_helper",
        build_action=build,
        policy=WARN,
        applies=lambda ctx: "helper" in ctx.artifacts,
        description="Make the bundled capture helper executable and ad-hoc signed",
    )


def virtual_audio_step(cask: str) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.shell_action(
            ctx, "virtual_audio", f"Install {cask}",
            [_brew(ctx), "install", "--cask", cask],
            progress=True,
        )

    return Step(
        name="virtual_audio",
        build_action=build,
        policy=WARN,
        capability=Capability(
            id="virtual-audio", kind=CapabilityKind.COMMAND,
            argv=("{brew}", "list", "--cask", "--versions", cask),
            description="virtual audio driver",
        ),
        applies=lambda ctx: ctx.options.install_virtual_audio,
        requires=("homebrew",),
        description="Loopback audio driver (BlackHole)",
    )


def app_bundle_step() -> Step:
    return common.write_files_step(
        "write_app_bundle", "Desktop app bundle", artifacts.app_bundle_files,
    )


def _service_commands(ctx: RunContext) -> list[StartCommand]:
    commands = []
    if "brew" in ctx.tools:
        commands.append(StartCommand([ctx.tools["brew"], "services", "start", "ollama"]))
    ollama = ctx.tools.get("ollama") or next(
        (p for p in _brew_fallbacks("ollama") if Path(p).is_file()), None,
    )
    if ollama:
        commands.append(StartCommand([ollama, "serve"], detached=True))
    return commands


def build_macos_plan(
    settings: InstallerSettings,
    services: PlanServices | None = None,
) -> InstallationPlan:
    services = services or PlanServices()

    steps = [
        common.preflight_step(),
        common.prepare_install_dir_step(),
        common.credential_step(services),
        clt_step(services),
        homebrew_step(),
        git_step(),
        common.fetch_source_step(),
        python_step(),
        common.venv_step("python_runtime"),
        common.pip_upgrade_step(),
        *(brew_package_step(p) for p in settings.brew_packages),
        common.requirements_step(),
        helper_step(),
        virtual_audio_step(settings.virtual_audio_cask),
        common.api_key_step(),
        common.preferences_step(),
        common.manifest_step(),
        common.launchers_step(),
        app_bundle_step(),
        common.uninstaller_step(),
        common.service_step(services, _service_commands),
    ]
    return InstallationPlan("macos", steps, next_steps=artifacts.next_steps)
