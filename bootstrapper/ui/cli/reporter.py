"""
Console reporter — renders sequencer events with click.

The engine emits structured events; this is the only place that
decides icons and colours. ``--json`` runs use the NullReporter and
print the summary instead.
"""

from __future__ import annotations

import threading

import click

from bootstrapper.core.models.device import DeviceReport
from bootstrapper.core.models.outcome import OutcomeKind
from bootstrapper.core.models.summary import RunSummary

_OUTCOME_STYLE = {
    OutcomeKind.SUCCESS: ("✓", "green"),
    OutcomeKind.SKIPPED: ("⊘", "white"),
    OutcomeKind.WARNED: ("⚠", "yellow"),
    OutcomeKind.FAILED: ("✗", "red"),
}


class ClickReporter:
    """Human-readable progress on the terminal.

    Args:
        verbose: Also show skipped steps and step timings.
        quiet: Only show the final summary.
    """

    def __init__(self, verbose: bool = False, quiet: bool = False):
        self.verbose = verbose
        self.quiet = quiet
        self._total = 0
        self._index = 0
        self._progress_shown = False
        self._lock = threading.Lock()

    # ── Run ─────────────────────────────────────────────────────

    def run_started(self, plan, ctx) -> None:
        self._total = len(plan) if plan is not None else 0
        if self.quiet:
            return
        click.echo()
        if plan is None:
            click.secho(f"🎧 Audio device check ({ctx.facts.system})", fg="cyan", bold=True)
        else:
            mode = "[mock] " if ctx.options.mock else ""
            click.secho(
                f"⚡ {mode}Installing {ctx.settings.app_name} on {plan.platform}",
                fg="cyan", bold=True,
            )
            click.echo(f"   Install path: {ctx.install_path}")
            click.echo(f"   Python: {ctx.runtime_version} | Steps: {self._total}")
        click.echo()

    def step_started(self, step) -> None:
        self._index += 1

    def step_finished(self, step, outcome) -> None:
        self._clear_progress()
        if self.quiet:
            return
        if outcome.kind == OutcomeKind.SKIPPED and not self.verbose:
            return

        icon, color = _OUTCOME_STYLE[outcome.kind]
        click.secho(f"   {icon} {step.name}", fg=color, nl=False)
        message = f"  {outcome.message}" if outcome.message else ""
        timing = f" ({outcome.duration_ms}ms)" if self.verbose and outcome.duration_ms else ""
        click.echo(f"{message}{timing}")
        if outcome.detail and outcome.kind in (OutcomeKind.FAILED, OutcomeKind.WARNED):
            for line in outcome.detail.splitlines()[-5:]:
                click.echo(f"     │ {line}")

    def progress(self, label: str, elapsed: float) -> None:
        if self.quiet:
            return
        with self._lock:
            click.echo(f"\r   ⏳ {label} ({int(elapsed)}s)", nl=False, err=True)
            self._progress_shown = True

    def _clear_progress(self) -> None:
        with self._lock:
            if self._progress_shown:
                click.echo("\r\033[K", nl=False, err=True)
                self._progress_shown = False

    # ── Audio and summary ───────────────────────────────────────

    def audio_report(self, report: DeviceReport) -> None:
        if self.quiet:
            return
        render_audio_report(report)

    def run_finished(self, summary: RunSummary) -> None:
        click.echo()
        if summary.failure:
            click.secho(f"❌ {summary.failure}", fg="red", bold=True)
        elif summary.status == "warnings":
            click.secho("⚠️  Finished with warnings", fg="yellow", bold=True)
        else:
            click.secho("✅ Finished", fg="green", bold=True)

        if summary.warnings:
            click.echo()
            click.secho("   Warnings:", fg="yellow")
            for warning in summary.warnings:
                click.echo(f"     • {warning}")

        if summary.outcomes:
            click.echo()
            click.echo(f"   Install path: {summary.install_path}")

        if summary.next_steps:
            click.echo()
            click.secho("   Next steps:", fg="cyan")
            for line in summary.next_steps:
                click.echo(f"     → {line}")
        click.echo()


def render_audio_report(report: DeviceReport) -> None:
    """Print a device configuration report."""
    detection = report.detection
    click.secho(f"🎧 Audio devices ({report.platform})", fg="cyan", bold=True)

    for label, found in (
        ("Virtual cable", detection.virtual_cable),
        ("Stereo Mix", detection.stereo_mix),
        ("Microphone", detection.microphone),
    ):
        if found:
            click.secho(f"   ✓ {label}", fg="green")
        else:
            click.secho(f"   ✗ {label}", fg="white")

    for name in report.enablement_attempts:
        click.echo(f"   ↻ tried to enable '{name}'")

    for device in report.devices:
        state = "enabled" if device.enabled else "disabled"
        click.echo(f"     • {device.name} [{device.kind.value}, {state}]")

    color = "green" if report.usable_count else "red"
    click.secho(f"   Usable input devices: {report.usable_count}", fg=color, bold=True)

    for warning in report.warnings:
        click.secho(f"   ⚠ {warning}", fg="yellow")

    if report.remediation:
        click.echo()
        click.secho("   To capture system audio:", fg="cyan")
        for line in report.remediation:
            click.echo(f"     → {line}")
