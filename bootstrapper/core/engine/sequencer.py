"""
Pipeline sequencer — the central orchestration loop.

Runs a plan's steps in their fixed order against one run context,
stops at the first FATAL failure, collects WARN outcomes as warnings,
then hands over to the audio device configurator and builds the
final summary.

Flow:
    plan → for each step: applies? → execute → classify → (stop | continue)
         → device configuration → summary → audit
"""

from __future__ import annotations

import logging
import threading
import time

from bootstrapper.core.engine.executor import StepExecutor
from bootstrapper.core.engine.plan import InstallationPlan
from bootstrapper.core.engine.reporter import NullReporter, Reporter
from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.device import DeviceReport
from bootstrapper.core.models.outcome import Outcome
from bootstrapper.core.models.summary import RunSummary
from bootstrapper.core.persistence.audit import AuditEntry, AuditWriter
from bootstrapper.core.services.devices.state_machine import DeviceConfigurator

logger = logging.getLogger(__name__)


class PipelineSequencer:
    """Drive a plan to completion or to its first fatal failure.

    Args:
        executor: Step executor.
        configurator: Device configurator run as the tail of every
            successful run. None skips the device stage.
        reporter: Receives structured events.
        audit: Ledger writer; None disables the ledger.
        cancel_event: Checked between steps. Setting it stops the run
            before the next step starts.
    """

    def __init__(
        self,
        executor: StepExecutor,
        configurator: DeviceConfigurator | None = None,
        reporter: Reporter | None = None,
        audit: AuditWriter | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self._executor = executor
        self._configurator = configurator
        self._reporter = reporter or NullReporter()
        self._audit = audit
        self._cancel = cancel_event or threading.Event()

    def run(self, plan: InstallationPlan | None, ctx: RunContext) -> RunSummary:
        """Run the plan (or only the device stage in audio-only mode)."""
        started = time.monotonic()
        audio: DeviceReport | None = None
        self._reporter.run_started(plan, ctx)

        try:
            if ctx.options.audio_only or plan is None:
                audio = self._configure_audio()
            else:
                self._run_steps(plan, ctx)
                if ctx.failure is None:
                    audio = self._configure_audio()
        finally:
            ctx.scrub_secrets()

        summary = self._summarize(plan, ctx, audio, started)
        if self._audit is not None:
            op = "audio" if ctx.options.audio_only else "install"
            self._audit.write(AuditEntry.from_summary(summary, op))
        self._reporter.run_finished(summary)
        return summary

    # ── Stages ──────────────────────────────────────────────────

    def _run_steps(self, plan: InstallationPlan, ctx: RunContext) -> None:
        logger.info("Running %d-step %s plan (run %s)", len(plan), plan.platform, ctx.run_id)

        for step in plan:
            if self._cancel.is_set():
                ctx.failure = f"Run cancelled before step '{step.name}'"
                logger.warning(ctx.failure)
                return

            if not step.applies(ctx):
                outcome = Outcome.skipped(step.name, "not applicable", policy=step.policy)
                logger.debug("%s: not applicable", step.name)
            else:
                self._reporter.step_started(step)
                outcome = self._executor.execute(step, ctx)

            ctx.record(outcome)
            self._reporter.step_finished(step, outcome)

            if outcome.is_warning:
                ctx.warn(step.name, outcome.message)
            elif outcome.is_failure:
                ctx.failure = f"{step.name}: {outcome.message}"
                logger.error("Stopping: %s", ctx.failure)
                return

    def _configure_audio(self) -> DeviceReport | None:
        if self._configurator is None:
            return None
        report = self._configurator.run()
        self._reporter.audio_report(report)
        return report

    def _summarize(
        self,
        plan: InstallationPlan | None,
        ctx: RunContext,
        audio: DeviceReport | None,
        started: float,
    ) -> RunSummary:
        failed = ctx.failure is not None
        if failed:
            status = "failed"
        elif ctx.warnings or (audio is not None and audio.warnings):
            status = "warnings"
        else:
            status = "ok"

        next_steps: list[str] = []
        if not failed and plan is not None and not ctx.options.audio_only:
            next_steps = plan.next_steps(ctx)

        return RunSummary(
            run_id=ctx.run_id,
            status=status,
            exit_code=1 if failed else 0,
            platform=ctx.facts.system,
            install_path=ctx.install_path,
            failure=ctx.failure,
            warnings=list(ctx.warnings),
            outcomes=list(ctx.outcomes),
            audio=audio,
            next_steps=next_steps,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
