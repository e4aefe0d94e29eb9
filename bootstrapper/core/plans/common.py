"""
Shared step definitions — steps both platform plans use.

Each factory returns an immutable Step. Steps read settings and flags
from the RunContext at run time, so one definition serves every run.
Host-facing collaborators (credential gate, process runner, service
polling) come from PlanServices so tests can substitute them.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, NamedTuple

from bootstrapper.adapters.internal import TaskFailed
from bootstrapper.core.engine.executor import StepPreconditionError
from bootstrapper.core.models.action import Action, Receipt
from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.step import (
    Capability,
    CapabilityKind,
    FailurePolicy,
    ProbeResult,
    Step,
)
from bootstrapper.core.services import artifacts, github_api
from bootstrapper.core.services.credential_gate import CredentialError, CredentialGate
from bootstrapper.core.services.platform_facts import version_tuple
from bootstrapper.core.services.service_wait import start_detached, wait_for_service

logger = logging.getLogger(__name__)

FATAL = FailurePolicy.FATAL
WARN = FailurePolicy.WARN


def default_credential_gate(ctx: RunContext) -> CredentialGate:
    return CredentialGate(
        repository=ctx.settings.repository,
        token_env=ctx.settings.token_env,
        interactive=ctx.options.interactive and ctx.facts.interactive,
        timeout=ctx.settings.network_timeout,
    )


@dataclass
class PlanServices:
    """Host collaborators used by in-process step tasks."""

    credential_gate: Callable[[RunContext], CredentialGate] = default_credential_gate
    run: Callable[..., subprocess.CompletedProcess] = subprocess.run
    spawn: Callable[[list[str]], Any] = start_detached
    wait_for_service: Callable[..., bool] = wait_for_service
    sleep: Callable[[float], None] = time.sleep


# ── Builders ────────────────────────────────────────────────────


def action(step: str, adapter: str, description: str = "", **params: Any) -> Action:
    return Action(id=step, step=step, adapter=adapter, description=description, params=params)


def shell_action(ctx: RunContext, step: str, description: str, argv: list[str], **params: Any) -> Action:
    params.setdefault("timeout", ctx.settings.step_timeout)
    return action(step, "shell", description, argv=argv, **params)


def task_action(step: str, description: str, task: Callable[[], Any]) -> Action:
    return action(step, "internal", description, task=task)


def install_path(ctx: RunContext, relative: str) -> Path:
    return Path(ctx.install_path) / relative


def record_tool(name: str) -> Callable[[RunContext, ProbeResult, Receipt | None], None]:
    """Hook that remembers where a tool was found."""

    def hook(ctx: RunContext, result: ProbeResult, _receipt: Receipt | None) -> None:
        if result.path:
            ctx.tools[name] = result.path

    return hook


def python_for(ctx: RunContext) -> str:
    if ctx.python_path:
        return ctx.python_path
    return "python" if ctx.facts.is_windows else "python3"


# ── Preflight ───────────────────────────────────────────────────


def _build_preflight(ctx: RunContext, _probe: ProbeResult) -> Action:
    facts = ctx.facts
    settings = ctx.settings

    if facts.system not in ("macos", "windows"):
        raise StepPreconditionError(f"Unsupported operating system: {facts.system}")

    if facts.is_macos and version_tuple(facts.os_version) < version_tuple(settings.min_macos):
        raise StepPreconditionError(
            f"macOS {settings.min_macos} or later is required (found {facts.os_version or 'unknown'})"
        )

    if facts.free_space_gb is not None and facts.free_space_gb < settings.min_free_gb:
        raise StepPreconditionError(
            f"Not enough free disk space: {facts.free_space_gb:.1f}GB available, "
            f"{settings.min_free_gb:.1f}GB required"
        )

    if facts.is_macos and facts.arch != "arm64":
        logger.warning("Intel Mac detected; transcription will be slower than on Apple Silicon.")

    summary = f"{facts.system} {facts.os_version} ({facts.arch})"
    return task_action("preflight", "Check platform requirements", lambda: summary)


def preflight_step() -> Step:
    return Step(
        name="preflight",
        build_action=_build_preflight,
        policy=FATAL,
        description="Supported OS, minimum version, free disk space",
    )


# ── Install directory ───────────────────────────────────────────


def _build_prepare_dir(ctx: RunContext, probe: ProbeResult) -> Action:
    if probe.satisfied and not ctx.options.force:
        raise StepPreconditionError(
            f"Install directory {ctx.install_path} already exists "
            f"({probe.details.get('count', 0)} entries). Re-run with --force to replace it."
        )
    return action(
        "prepare_install_dir", "filesystem", "Prepare install directory",
        operation="reset_dir", path=ctx.install_path,
    )


def prepare_install_dir_step() -> Step:
    return Step(
        name="prepare_install_dir",
        build_action=_build_prepare_dir,
        policy=FATAL,
        capability=Capability(
            id="install-dir", kind=CapabilityKind.DIRECTORY, target="{install_path}",
            description="install directory",
        ),
        skip_when_satisfied=False,
        description="Exclusive install directory (replaced only with --force)",
    )


# ── Credential ──────────────────────────────────────────────────


def credential_step(services: PlanServices) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        gate = services.credential_gate(ctx)
        presupplied = ctx.options.token.get_secret_value() if ctx.options.token else None

        def obtain():
            try:
                return gate.obtain(presupplied)
            except CredentialError as e:
                raise TaskFailed(str(e)) from e

        return task_action("validate_credential", "Validate repository access", obtain)

    def remember(ctx: RunContext, _result: ProbeResult, receipt: Receipt | None) -> None:
        if receipt is not None:
            ctx.credential = receipt.metadata["value"]

    return Step(
        name="validate_credential",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="credential", kind=CapabilityKind.CONTEXT, target="credential.valid",
            description="validated credential",
        ),
        on_satisfied=remember,
        description="GitHub token: parameter, environment, or prompt; one liveness check",
    )


# ── Source fetch ────────────────────────────────────────────────


def _build_fetch(ctx: RunContext, _probe: ProbeResult) -> Action:
    settings = ctx.settings
    token = ctx.credential.secret() if ctx.credential else ""

    git = ctx.tools.get("git")
    if git:
        return action(
            "fetch_source", "git", f"Clone {settings.repository}@{settings.branch}",
            operation="clone",
            git=git,
            url=settings.repository_url,
            branch=settings.branch,
            dest=ctx.install_path,
            secret_env=github_api.git_auth_env(token) if token else {},
            timeout=settings.step_timeout,
        )

    logger.info("git unavailable, downloading the source archive instead")
    return action(
        "fetch_source", "http", f"Download {settings.repository}@{settings.branch} archive",
        operation="archive",
        url=github_api.archive_url(settings.repository, settings.branch),
        dest=ctx.install_path,
        strip_top=True,
        secret_headers=github_api.auth_headers(token) if token else {},
        timeout=settings.network_timeout * 4,
    )


def _verify_source(ctx: RunContext, _result: ProbeResult, receipt: Receipt | None) -> None:
    settings = ctx.settings
    entry = install_path(ctx, settings.app_entry)
    if not entry.is_file():
        raise StepPreconditionError(f"Required file missing after fetch: {settings.app_entry}")

    if receipt is not None:
        ctx.artifacts["source"] = str(receipt.metadata.get("method", receipt.adapter))

    if ctx.facts.is_macos and settings.helper_binary:
        helper = install_path(ctx, settings.helper_binary)
        if helper.is_file():
            ctx.artifacts["helper"] = str(helper)
        else:
            ctx.warn("fetch_source", f"Helper binary not found: {settings.helper_binary}")

    # The token has done its job
    ctx.credential = None


def fetch_source_step() -> Step:
    return Step(
        name="fetch_source",
        build_action=_build_fetch,
        policy=FATAL,
        on_satisfied=_verify_source,
        requires=("prepare_install_dir", "validate_credential"),
        description="Authenticated shallow clone, or archive download without git",
    )


# ── Virtual environment ─────────────────────────────────────────


def venv_step(python_step: str) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return shell_action(
            ctx, "create_venv", "Create virtual environment",
            [python_for(ctx), "-m", "venv", ctx.venv_path],
        )

    return Step(
        name="create_venv",
        build_action=build,
        policy=FATAL,
        capability=Capability(
            id="venv", kind=CapabilityKind.FILE, target="{venv_python}",
            description="virtual environment interpreter",
        ),
        requires=("fetch_source", python_step),
        verify=True,
        description="Virtual environment inside the install directory",
    )


def pip_upgrade_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return shell_action(
            ctx, "upgrade_pip", "Upgrade pip, wheel and setuptools",
            [ctx.venv_python, "-m", "pip", "install", "--upgrade", "pip", "wheel", "setuptools"],
            progress=True,
        )

    return Step(
        name="upgrade_pip",
        build_action=build,
        policy=WARN,
        requires=("create_venv",),
        description="Upgrade packaging tools in the virtual environment",
    )


def requirements_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        # A rehearsal never fetched the source, so install every configured file
        if ctx.options.mock:
            present = list(ctx.settings.requirements)
        else:
            present = []
            for rel in ctx.settings.requirements:
                if install_path(ctx, rel).is_file():
                    present.append(rel)
                else:
                    logger.warning("Requirements file not found, skipping: %s", rel)
        if not present:
            raise StepPreconditionError(
                "No requirements files found: " + ", ".join(ctx.settings.requirements)
            )

        argv = [ctx.venv_python, "-m", "pip", "install"]
        for rel in present:
            argv += ["-r", str(install_path(ctx, rel))]
        return shell_action(ctx, "install_requirements", "Install application requirements", argv, progress=True)

    return Step(
        name="install_requirements",
        build_action=build,
        policy=FATAL,
        requires=("create_venv",),
        description="Application requirements into the virtual environment",
    )


# ── Generated artifacts ─────────────────────────────────────────


def write_files_step(
    name: str,
    description: str,
    files: Callable[[RunContext], list[artifacts.GeneratedFile]],
) -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return action(
            name, "filesystem", description,
            operation="write_many",
            files=[f.as_write_entry() for f in files(ctx)],
        )

    def remember(ctx: RunContext, _result: ProbeResult, receipt: Receipt | None) -> None:
        if receipt is not None:
            written = receipt.metadata.get("written", []) + receipt.metadata.get("kept", [])
            ctx.artifacts[name] = ", ".join(written)

    return Step(
        name=name,
        build_action=build,
        policy=WARN,
        on_satisfied=remember,
        requires=("fetch_source",),
        description=description,
    )


def api_key_step() -> Step:
    """Seed the API key file from the template in the checkout, never replacing it."""

    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return action(
            "write_api_key", "filesystem", "API key file from template",
            operation="copy",
            source=ctx.settings.api_key_template,
            path=ctx.settings.api_key_file,
            if_absent=True,
        )

    def remember(ctx: RunContext, _result: ProbeResult, receipt: Receipt | None) -> None:
        if receipt is None:
            return
        path = receipt.metadata["path"]
        ctx.artifacts["write_api_key"] = path
        if receipt.metadata.get("copied"):
            logger.warning("Add your Claude API key to: %s", path)

    return Step(
        name="write_api_key",
        build_action=build,
        policy=WARN,
        on_satisfied=remember,
        requires=("fetch_source",),
        description="API key file (kept if present)",
    )


def preferences_step() -> Step:
    return write_files_step(
        "write_preferences", "Default preferences (kept if present)",
        lambda ctx: [artifacts.preferences_file(ctx)],
    )


def launchers_step() -> Step:
    return write_files_step("write_launchers", "Launch scripts", artifacts.launcher_files)


def uninstaller_step() -> Step:
    return write_files_step(
        "write_uninstaller", "Uninstall script",
        lambda ctx: [artifacts.uninstaller_file(ctx)],
    )


def manifest_step() -> Step:
    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        return shell_action(
            ctx, "write_manifest", "Record installed packages",
            [ctx.venv_python, "-m", "pip", "freeze"],
            stdout_path=str(install_path(ctx, artifacts.MANIFEST_PATH)),
        )

    def remember(ctx: RunContext, _result: ProbeResult, _receipt: Receipt | None) -> None:
        ctx.artifacts["write_manifest"] = str(install_path(ctx, artifacts.MANIFEST_PATH))

    return Step(
        name="write_manifest",
        build_action=build,
        policy=WARN,
        on_satisfied=remember,
        requires=("create_venv",),
        description="Dependency manifest (pip freeze)",
    )


# ── Local model service ─────────────────────────────────────────


class StartCommand(NamedTuple):
    argv: list[str]
    detached: bool = False     # long-running server process, not a one-shot command


def service_step(
    services: PlanServices,
    start_commands: Callable[[RunContext], list[StartCommand]],
) -> Step:
    """Start the local model service and wait for it, within a fixed number of attempts.

    ``start_commands`` returns candidates, tried in order until one starts.
    """

    def build(ctx: RunContext, _probe: ProbeResult) -> Action:
        settings = ctx.settings
        candidates = start_commands(ctx)

        def start_and_wait() -> str:
            if not candidates:
                raise TaskFailed("ollama is not installed; start it manually")
            _start_first(services, candidates)
            if not services.wait_for_service(
                settings.service_url,
                attempts=settings.service_attempts,
                delay=settings.service_delay,
                sleep=services.sleep,
            ):
                raise TaskFailed(
                    f"Service not ready at {settings.service_url} "
                    f"after {settings.service_attempts} attempts"
                )
            return "service ready"

        return task_action("start_service", "Start local model service", start_and_wait)

    return Step(
        name="start_service",
        build_action=build,
        policy=WARN,
        capability=Capability(
            id="model-service", kind=CapabilityKind.SERVICE, target="{service_url}",
            description="local model service",
        ),
        description="Start Ollama and wait for its API",
    )


def _start_first(services: PlanServices, candidates: list[StartCommand]) -> None:
    errors = []
    for argv, detached in candidates:
        try:
            if detached:
                services.spawn(argv)
                return
            result = services.run(argv, capture_output=True, text=True, timeout=60)
            if result.returncode == 0:
                return
            errors.append(f"{' '.join(argv)}: exit {result.returncode}")
        except (OSError, subprocess.TimeoutExpired) as e:
            errors.append(f"{' '.join(argv)}: {e}")
    raise TaskFailed("Could not start the service: " + "; ".join(errors))
