"""
CLI commands for audio capture devices.

Thin wrapper over the device configurator, usable without an install.

Usage::

    bootstrapper audio check
    bootstrapper audio check --json
"""

from __future__ import annotations

import json
import platform
import sys

import click


@click.group()
def audio() -> None:
    """Audio capture devices: detect, enable, verify."""


@audio.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def check(as_json: bool) -> None:
    """Detect capture devices, enable Stereo Mix if it is disabled, and verify.

    Exits 0 when at least one usable input device remains, 1 otherwise.
    """
    from bootstrapper.core.services.platform_facts import normalize_system
    from bootstrapper.core.use_cases.install import run_audio_check
    from bootstrapper.ui.cli.reporter import render_audio_report

    system = normalize_system(platform.system())
    report = run_audio_check(system)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    else:
        click.echo()
        render_audio_report(report)
        click.echo()

    sys.exit(0 if report.usable_count else 1)
