"""
Install use case — the vertical slice from CLI flags to a run summary.

Gathers platform facts, builds the run context and the platform plan,
wires executor, device configurator, reporter and audit ledger, and
hands everything to the sequencer. Every collaborator can be passed in
so tests drive a full run without touching the host.
"""

from __future__ import annotations

import logging
from typing import Any

from bootstrapper.adapters.registry import AdapterRegistry, default_registry
from bootstrapper.core.config.loader import InstallerSettings
from bootstrapper.core.engine.executor import StepExecutor
from bootstrapper.core.engine.plan import InstallationPlan
from bootstrapper.core.engine.probe import CapabilityProbe
from bootstrapper.core.engine.reporter import NullReporter, Reporter
from bootstrapper.core.engine.sequencer import PipelineSequencer
from bootstrapper.core.models.context import PlatformFacts, RunContext, RunOptions
from bootstrapper.core.models.device import DeviceReport
from bootstrapper.core.models.summary import RunSummary
from bootstrapper.core.persistence.audit import AuditWriter
from bootstrapper.core.plans import PlanServices, build_plan
from bootstrapper.core.services.devices import DeviceConfigurator, DeviceRegistry, registry_for
from bootstrapper.core.services.platform_facts import detect_platform_facts

logger = logging.getLogger(__name__)


def run_install(
    settings: InstallerSettings,
    options: RunOptions,
    registry: AdapterRegistry | None = None,
    probe: CapabilityProbe | None = None,
    services: PlanServices | None = None,
    device_registry: DeviceRegistry | None = None,
    facts: PlatformFacts | None = None,
    reporter: Reporter | None = None,
    audit: bool = True,
) -> RunSummary:
    """Run the installer (or only the audio stage with ``options.audio_only``).

    Args:
        settings: Loaded installer settings.
        options: Per-run flags from the command line.
        registry: Adapter registry. Defaults to every production adapter,
            in mock mode when ``options.mock`` is set.
        probe: Capability probe. Defaults to the live-host probe.
        services: Host collaborators for in-process tasks.
        device_registry: Audio device registry. Defaults to the host's.
        facts: Platform facts. Detected from the host when omitted.
        reporter: Receives run events.
        audit: Append the run to the NDJSON ledger under ``state_dir``.

    Returns:
        RunSummary whose ``exit_code`` is the process exit code.

    Raises:
        UnsupportedPlatformError: No plan exists for this OS (full install only).
    """
    reporter = reporter or NullReporter()
    install_path = options.install_path or settings.default_install_path()
    facts = facts or detect_platform_facts(install_path)
    ctx = RunContext.create(settings, options, facts)

    plan: InstallationPlan | None = None
    if not options.audio_only:
        plan = build_plan(facts.system, settings, services)

    if registry is None:
        registry = default_registry(mock_mode=options.mock, progress=reporter.progress)
    logger.debug("Adapters: %s", ", ".join(registry.names()))

    configurator = DeviceConfigurator(
        device_registry or registry_for(facts.system),
        platform=facts.system,
    )
    sequencer = PipelineSequencer(
        StepExecutor(registry, probe),
        configurator=configurator,
        reporter=reporter,
        audit=AuditWriter(settings.state_path()) if audit else None,
    )

    logger.info(
        "Starting %s on %s (install path %s)",
        "audio check" if options.audio_only else "install", facts.system, ctx.install_path,
    )
    return sequencer.run(plan, ctx)


def run_audio_check(
    system: str,
    device_registry: DeviceRegistry | None = None,
) -> DeviceReport:
    """Run the device state machine on its own, outside any install."""
    configurator = DeviceConfigurator(device_registry or registry_for(system), platform=system)
    return configurator.run()


def describe_plan(
    system: str,
    settings: InstallerSettings,
    options: RunOptions | None = None,
) -> list[dict[str, Any]]:
    """Step table for ``system`` with applicability resolved against ``options``."""
    plan = build_plan(system, settings)
    options = options or RunOptions()
    ctx = RunContext.create(settings, options, PlatformFacts(system=system))
    return plan.describe(ctx)
