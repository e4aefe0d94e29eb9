"""
Step executor — run one step and classify what happened.

Flow:
    probe → (already satisfied? skip) → build action → dispatch → verify → hook

Exactly one adapter action per step. The executor never raises for a
failing step: the step's failure policy turns a failed receipt into
either a ``failed`` or a ``warned`` outcome. The run context is only
written through the step's ``on_satisfied`` hook, and only after the
capability is known to be satisfied.
"""

from __future__ import annotations

import logging
import time

from bootstrapper.adapters.registry import AdapterRegistry
from bootstrapper.core.engine.probe import CapabilityProbe
from bootstrapper.core.models.action import Receipt
from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.outcome import Outcome
from bootstrapper.core.models.step import FailurePolicy, ProbeResult, Step

logger = logging.getLogger(__name__)


class StepPreconditionError(Exception):
    """A step cannot be attempted. Classified by the step's failure policy."""


def _classify(step: Step, message: str, started: float, detail: str = "") -> Outcome:
    elapsed = int((time.monotonic() - started) * 1000)
    if step.policy == FailurePolicy.FATAL:
        logger.error("%s failed: %s", step.name, message)
        return Outcome.failed(
            step.name, message, policy=step.policy, duration_ms=elapsed, detail=detail,
        )
    logger.warning("%s: %s", step.name, message)
    return Outcome.warned(
        step.name, message, policy=step.policy, duration_ms=elapsed, detail=detail,
    )


class StepExecutor:
    """Execute steps through the adapter registry."""

    def __init__(self, registry: AdapterRegistry, probe: CapabilityProbe | None = None):
        self._registry = registry
        self._probe = probe or CapabilityProbe()

    @property
    def probe(self) -> CapabilityProbe:
        return self._probe

    def execute(self, step: Step, ctx: RunContext) -> Outcome:
        started = time.monotonic()

        probe_result = ProbeResult(satisfied=False)
        if step.capability is not None:
            probe_result = self._probe.is_satisfied(step.capability, ctx)
            if probe_result.satisfied and step.skip_when_satisfied:
                logger.info("%s: already satisfied", step.name)
                try:
                    self._on_satisfied(step, ctx, probe_result, None)
                except StepPreconditionError as e:
                    return _classify(step, str(e), started)
                return Outcome.skipped(
                    step.name, "already satisfied", policy=step.policy,
                    duration_ms=int((time.monotonic() - started) * 1000),
                )

        try:
            action = step.build_action(ctx, probe_result)
        except StepPreconditionError as e:
            return _classify(step, str(e), started)

        logger.info("%s: %s", step.name, action.description or action.adapter)
        receipt = self._registry.execute_action(action, working_dir=ctx.install_path)

        if receipt.failed:
            return _classify(
                step,
                receipt.error or "failed",
                started,
                detail=str(receipt.metadata.get("stdout", "")),
            )
        if step.verify and step.capability is not None and not receipt.rehearsal:
            probe_result = self._probe.is_satisfied(step.capability, ctx)
            if not probe_result.satisfied:
                what = step.capability.description or step.capability.id
                return _classify(step, f"{what} still missing after install", started)

        if not receipt.rehearsal:
            try:
                self._on_satisfied(step, ctx, probe_result, receipt)
            except StepPreconditionError as e:
                return _classify(step, str(e), started)

        return Outcome.success(
            step.name,
            receipt.last_line,
            policy=step.policy,
            duration_ms=int((time.monotonic() - started) * 1000),
        )

    @staticmethod
    def _on_satisfied(
        step: Step, ctx: RunContext, result: ProbeResult, receipt: Receipt | None,
    ) -> None:
        if step.on_satisfied is not None:
            step.on_satisfied(ctx, result, receipt)
