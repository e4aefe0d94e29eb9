"""
Windows plan — winget-based installation.

Order:
    preflight → install dir → credential → winget → Python → VC++ runtime
    → git → source → venv → pip → requirements → Ollama → WSL (opt-in)
    → virtual cable download → virtual cable setup → artifacts → model service
"""

from __future__ import annotations

from pathlib import Path

from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.engine.executor import StepPreconditionError
from bootstrapper.core.engine.plan import InstallationPlan
from bootstrapper.core.models.action import Action, Receipt
from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.step import Capability, CapabilityKind, FailurePolicy, ProbeResult, Step
from bootstrapper.core.plans import common
from bootstrapper.core.plans.common import FATAL, WARN, PlanServices, StartCommand
from bootstrapper.core.services import artifacts

APP_INSTALLER_FAMILY = "Microsoft.DesktopAppInstaller_8wekyb3d8bbwe"
VCREDIST_KEY = r"HKLM\SOFTWARE\Microsoft\VisualStudio\14.0\VC\Runtimes\x64"
WSL_FEATURE = "Microsoft-Windows-Subsystem-Linux"
REBOOT_REQUIRED = 3010

# Installed by winget into the user profile
_PYTHON_FALLBACKS = (
    r"{localappdata}\Programs\Python\Python{runtime_nodot}\python.exe",
    r"C:\Program Files\Python{runtime_nodot}\python.exe",
)
_GIT_FALLBACKS = (r"C:\Program Files\Git\cmd\git.exe",)
_OLLAMA_FALLBACKS = (r"{localappdata}\Programs\Ollama\ollama.exe",)


def winget_install_argv(ctx: RunContext, package_id: str) -> list[str]:
    """Install-or-noop: winget exits 0 when the package is already present."""
    return [
        ctx.tools.get("winget", "winget"), "install",
        "--id", package_id, "-e", "--silent",
        "--accept-package-agreements", "--accept-source-agreements",
    ]


def winget_step(
    name: str,
    package_id: str,
    policy: FailurePolicy,
    capability: Capability,
    description: str,
    on_satisfied=None,
    requires: tuple[str, ...] = ("winget",),
) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        package = package_id.format_map(ctx.template_vars())
        return common.shell_action(
            ctx, name, f"winget install {package}",
            winget_install_argv(ctx, package),
            progress=True,
        )

    return Step(
        name=name,
        build_action=build,
        policy=policy,
        capability=capability,
        on_satisfied=on_satisfied,
        requires=requires,
        verify=capability.kind == CapabilityKind.TOOL,
        description=description,
    )


# ── Package manager ─────────────────────────────────────────────


def winget_bootstrap_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.shell_action(
            ctx, "winget", "Register App Installer (winget)",
            [
                "powershell", "-NoProfile", "-NonInteractive", "-Command",
                f"Add-AppxPackage -RegisterByFamilyName -MainPackage {APP_INSTALLER_FAMILY}",
            ],
            timeout=600,
        )

    return Step(
        name="winget",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="winget", kind=CapabilityKind.TOOL, target="winget",
            fallback_paths=(r"{localappdata}\Microsoft\WindowsApps\winget.exe",),
            description="winget",
        ),
        on_satisfied=common.record_tool("winget"),
        verify=True,
        description="System package manager",
    )


def python_step() -> Step:
    def remember(ctx: RunContext, result: ProbeResult, _receipt: Receipt | None) -> None:
        ctx.python_path = result.path

    return winget_step(
        "python_runtime",
        "Python.Python.{runtime}",
        FATAL,
        Capability(
            id="python", kind=CapabilityKind.TOOL, target="python", version="{runtime}",
            fallback_paths=_PYTHON_FALLBACKS, description="Python runtime",
        ),
        "Python at the selected version",
        on_satisfied=remember,
    )


# ── Optional components ─────────────────────────────────────────


def wsl_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        if not ctx.facts.elevated:
            raise StepPreconditionError("Enabling WSL needs an elevated (Administrator) prompt")
        return common.shell_action(
            ctx, "wsl", "Enable Windows Subsystem for Linux",
            [
                "dism.exe", "/online", "/enable-feature",
                f"/featurename:{WSL_FEATURE}", "/all", "/norestart",
            ],
            ok_codes=[0, REBOOT_REQUIRED],
        )

    def note_reboot(ctx: RunContext, _result: ProbeResult, receipt: Receipt | None) -> None:
        if receipt is not None and receipt.return_code == REBOOT_REQUIRED:
            ctx.warn("wsl", "WSL enabled; restart Windows to finish")

    return Step(
        name="wsl",
        build_action=build,
        policy=WARN,
        capability=Capability(
            id="wsl", kind=CapabilityKind.COMMAND, argv=("wsl", "--status"),
            description="Windows Subsystem for Linux",
        ),
        applies=lambda ctx: ctx.options.enable_wsl,
        on_satisfied=note_reboot,
        description="Optional OS feature, opt-in with --wsl",
    )


def _vbcable_setup_name(ctx: RunContext) -> str:
    return "VBCABLE_Setup_x64.exe" if ctx.facts.arch in ("amd64", "x86_64", "arm64") else "VBCABLE_Setup.exe"


def download_virtual_audio_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return common.action(
            "download_virtual_audio", "http", "Download VB-Audio Virtual Cable",
            operation="archive",
            url=ctx.settings.vbcable_url,
            dest=str(common.install_path(ctx, "vendor/vbcable")),
            timeout=ctx.settings.network_timeout * 4,
        )

    def locate_setup(ctx: RunContext, _result: ProbeResult, _receipt: Receipt | None) -> None:
        setup = common.install_path(ctx, "vendor/vbcable") / _vbcable_setup_name(ctx)
        if not setup.is_file():
            raise StepPreconditionError(f"{setup.name} not found in the downloaded package")
        ctx.artifacts["vbcable_setup"] = str(setup)

    return Step(
        name="download_virtual_audio",
        build_action=build,
        policy=WARN,
        applies=lambda ctx: ctx.options.install_virtual_audio,
        on_satisfied=locate_setup,
        requires=("fetch_source",),
        description="Virtual loopback cable driver package",
    )


def install_virtual_audio_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        if not ctx.facts.elevated:
            raise StepPreconditionError(
                "Installing the virtual cable driver needs an elevated (Administrator) prompt; "
                f"run {ctx.artifacts['vbcable_setup']} manually"
            )
        return common.shell_action(
            ctx, "install_virtual_audio", "Install VB-Audio Virtual Cable",
            [ctx.artifacts["vbcable_setup"], "-i", "-h"],
            timeout=600,
        )

    return Step(
        name="install_virtual_audio",
        build_action=build,
        policy=WARN,
        applies=lambda ctx: ctx.options.install_virtual_audio and "vbcable_setup" in ctx.artifacts,
        description="Silent driver setup (only when the download succeeded)",
    )


def _service_commands(ctx: RunContext) -> list[StartCommand]:
    ollama = ctx.tools.get("ollama")
    if not ollama:
        fallback = Path(_OLLAMA_FALLBACKS[0].format_map(ctx.template_vars()))
        ollama = str(fallback) if fallback.is_file() else None
    return [StartCommand([ollama, "serve"], detached=True)] if ollama else []


def build_windows_plan(
    settings: InstallerSettings,
    services: PlanServices | None = None,
) -> InstallationPlan:
    services = services or PlanServices()

    steps = [
        common.preflight_step(),
        common.prepare_install_dir_step(),
        common.credential_step(services),
        winget_bootstrap_step(),
        python_step(),
        winget_step(
            "vcredist", "Microsoft.VCRedist.2015+.x64", WARN,
            Capability(
                id="vcredist", kind=CapabilityKind.COMMAND,
                argv=("reg", "query", VCREDIST_KEY, "/v", "Installed"),
                description="Visual C++ runtime",
            ),
            "Visual C++ redistributable for native wheels",
        ),
        winget_step(
            "git", "Git.Git", WARN,
            Capability(
                id="git", kind=CapabilityKind.TOOL, target="git",
                fallback_paths=_GIT_FALLBACKS, description="git",
            ),
            "git for cloning (archive download is the fallback)",
            on_satisfied=common.record_tool("git"),
        ),
        common.fetch_source_step(),
        common.venv_step("python_runtime"),
        common.pip_upgrade_step(),
        common.requirements_step(),
        winget_step(
            "ollama", "Ollama.Ollama", WARN,
            Capability(
                id="ollama", kind=CapabilityKind.TOOL, target="ollama",
                fallback_paths=_OLLAMA_FALLBACKS, description="Ollama",
            ),
            "Local model runtime",
            on_satisfied=common.record_tool("ollama"),
        ),
        wsl_step(),
        download_virtual_audio_step(),
        install_virtual_audio_step(),
        common.api_key_step(),
        common.preferences_step(),
        common.manifest_step(),
        common.launchers_step(),
        common.uninstaller_step(),
        common.service_step(services, _service_commands),
    ]
    return InstallationPlan("windows", steps, next_steps=artifacts.next_steps)
