"""
Transcriber bootstrap — CLI entrypoint.

Usage:
    bootstrapper install
    bootstrapper install --audio-only
    bootstrapper install --token ghp_... --force --no-virtual-audio
    bootstrapper plan --platform windows
    bootstrapper audio check
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from bootstrapper import __version__
from bootstrapper.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="bootstrapper")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to an installer settings YAML file (default: BOOTSTRAP_CONFIG or built-ins).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """Bootstrap the transcription application onto this machine."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        quiet_third_party=not debug,
    )


def _load_settings_or_exit(ctx: click.Context):
    from bootstrapper.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"))
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@cli.command()
@click.option("--audio-only", is_flag=True, help="Only check and configure audio capture devices.")
@click.option(
    "--virtual-audio/--no-virtual-audio", default=True,
    help="Install the virtual loopback audio driver (default: on).",
)
@click.option("--wsl/--no-wsl", default=False, help="Enable WSL on Windows (default: off).")
@click.option("--python-version", "runtime_version", default=None, help="Python version to install, e.g. 3.13.")
@click.option("--install-path", default=None, help="Install directory (default from settings).")
@click.option(
    "--token", default=None,
    help="GitHub token for the private repository (default: $GITHUB_TOKEN, else prompt).",
)
@click.option("--force", is_flag=True, help="Replace an existing install directory.")
@click.option("--non-interactive", is_flag=True, help="Never prompt; fail instead.")
@click.option("--mock", is_flag=True, help="Rehearse the run without executing anything.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output the summary as JSON.")
@click.pass_context
def install(
    ctx: click.Context,
    audio_only: bool,
    virtual_audio: bool,
    wsl: bool,
    runtime_version: str | None,
    install_path: str | None,
    token: str | None,
    force: bool,
    non_interactive: bool,
    mock: bool,
    as_json: bool,
) -> None:
    """Install the application and its dependencies.

    Examples:

        bootstrapper install

        bootstrapper install --install-path ~/PsycoPilot --force

        bootstrapper install --audio-only
    """
    from bootstrapper.core.engine.reporter import NullReporter
    from bootstrapper.core.models.context import RunOptions
    from bootstrapper.core.plans import UnsupportedPlatformError
    from bootstrapper.core.use_cases.install import run_install
    from bootstrapper.ui.cli.reporter import ClickReporter

    settings = _load_settings_or_exit(ctx)
    options = RunOptions(
        audio_only=audio_only,
        install_virtual_audio=virtual_audio,
        enable_wsl=wsl,
        runtime_version=runtime_version,
        install_path=install_path,
        token=token or None,
        force=force,
        interactive=not non_interactive,
        mock=mock,
    )
    reporter = NullReporter() if as_json else ClickReporter(
        verbose=ctx.obj.get("verbose", False),
        quiet=ctx.obj.get("quiet", False),
    )

    try:
        summary = run_install(settings, options, reporter=reporter)
    except UnsupportedPlatformError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))

    sys.exit(summary.exit_code)


@cli.command()
@click.option(
    "--platform", "system",
    type=click.Choice(["macos", "windows"]), default=None,
    help="Plan to show (default: this machine's).",
)
@click.option(
    "--virtual-audio/--no-virtual-audio", default=True,
    help="Resolve applicability with the virtual audio driver on or off.",
)
@click.option("--wsl/--no-wsl", default=False, help="Resolve applicability with WSL on or off.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(
    ctx: click.Context,
    system: str | None,
    virtual_audio: bool,
    wsl: bool,
    as_json: bool,
) -> None:
    """Show the ordered installation steps and their failure policies."""
    import platform as _platform

    from bootstrapper.core.models.context import RunOptions
    from bootstrapper.core.plans import UnsupportedPlatformError
    from bootstrapper.core.services.platform_facts import normalize_system
    from bootstrapper.core.use_cases.install import describe_plan

    settings = _load_settings_or_exit(ctx)
    system = system or normalize_system(_platform.system())
    options = RunOptions(install_virtual_audio=virtual_audio, enable_wsl=wsl)

    try:
        rows = describe_plan(system, settings, options)
    except UnsupportedPlatformError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps({"platform": system, "steps": rows}, indent=2))
        return

    click.secho(f"\n📋 {system} plan: {len(rows)} steps", fg="cyan", bold=True)
    click.echo()
    for row in rows:
        color = "red" if row["policy"] == "fatal" else "yellow"
        marker = "" if row["applies"] else "  (not applicable)"
        click.echo(f"   {row['index']:>2}. ", nl=False)
        click.secho(f"{row['policy']:<5}", fg=color, nl=False)
        click.echo(f"  {row['name']:<24} {row['description']}{marker}")
    click.echo()


# ── Register sub-command groups from bootstrapper/ui/cli/ ────────

from bootstrapper.ui.cli.audio import audio  # noqa: E402

cli.add_command(audio)


if __name__ == "__main__":
    cli()
