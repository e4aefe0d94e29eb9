"""
Run reporter — receives structured events from the sequencer.

The engine never prints. It tells a reporter what happened and the
reporter decides how (or whether) to show it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from bootstrapper.core.engine.plan import InstallationPlan
    from bootstrapper.core.models import DeviceReport, Outcome, RunContext, RunSummary, Step


class Reporter(Protocol):
    def run_started(self, plan: InstallationPlan | None, ctx: RunContext) -> None: ...

    def step_started(self, step: Step) -> None: ...

    def step_finished(self, step: Step, outcome: Outcome) -> None: ...

    def progress(self, label: str, elapsed: float) -> None: ...

    def audio_report(self, report: DeviceReport) -> None: ...

    def run_finished(self, summary: RunSummary) -> None: ...


class NullReporter:
    """Reporter that discards every event."""

    def run_started(self, plan, ctx) -> None:
        pass

    def step_started(self, step) -> None:
        pass

    def step_finished(self, step, outcome) -> None:
        pass

    def progress(self, label, elapsed) -> None:
        pass

    def audio_report(self, report) -> None:
        pass

    def run_finished(self, summary) -> None:
        pass


class RecordingReporter(NullReporter):
    """Reporter that keeps every event as ``(name, payload)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def run_started(self, plan, ctx) -> None:
        self.events.append(("run_started", plan))

    def step_started(self, step) -> None:
        self.events.append(("step_started", step.name))

    def step_finished(self, step, outcome) -> None:
        self.events.append(("step_finished", outcome))

    def audio_report(self, report) -> None:
        self.events.append(("audio_report", report))

    def run_finished(self, summary) -> None:
        self.events.append(("run_finished", summary))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]
