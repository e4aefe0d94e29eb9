"""
Artifact generator — files the installer writes into the install directory.

Produces the preferences file, launch scripts, the macOS app bundle
and the uninstaller from the run context. Generation is pure: it returns GeneratedFile
models and the filesystem adapter writes them.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel

from bootstrapper.core.models.context import RunContext

PREFERENCES_PATH = "config/user_preferences.json"
MANIFEST_PATH = "requirements.lock.txt"


class GeneratedFile(BaseModel):
    """A file produced by the installer.

    Attributes:
        path:      Path relative to the install directory, or absolute.
        content:   Full file content.
        overwrite: Whether to replace an existing file.
        mode:      Permission bits, or None to keep the default.
        reason:    Why this file was generated.
    """

    path: str
    content: str
    overwrite: bool = True
    mode: int | None = None
    reason: str = ""

    def as_write_entry(self) -> dict:
        """Entry for the filesystem adapter's write_many operation."""
        return {
            "path": self.path,
            "content": self.content,
            "mode": self.mode,
            "if_absent": not self.overwrite,
        }


# ── Preferences ─────────────────────────────────────────────────


def preferences_file(ctx: RunContext) -> GeneratedFile:
    """Default user preferences. Never replaces a user's existing file."""
    settings = ctx.settings
    data = {
        "last_models": {},
        "default_provider": settings.default_provider,
        "providers": {
            settings.default_provider: {"default_model": settings.default_model},
        },
    }
    return GeneratedFile(
        path=PREFERENCES_PATH,
        content=json.dumps(data, indent=4) + "\n",
        overwrite=False,
        reason="default preferences",
    )


# ── Launchers ───────────────────────────────────────────────────


_POSIX_LAUNCHER = """\
#!/usr/bin/env bash
# {app_name} launcher (generated by the installer)
SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"
cd "$SCRIPT_DIR"

if ! pgrep -x ollama >/dev/null 2>&1; then
    echo "Starting Ollama service..."
    (nohup ollama serve >/dev/null 2>&1 &)
    sleep 3
fi

exec "{venv_rel}/bin/python" "{app_entry}"{helper_args} "$@"
"""

_POSIX_WEBUI = """\
#!/usr/bin/env bash
# {app_name} web interface launcher (generated by the installer)
SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"
cd "$SCRIPT_DIR"

export PSYCOPILOT_INSTALLER=true

echo "Starting {app_name} web interface at http://127.0.0.1:{port}"

if ! pgrep -x ollama >/dev/null 2>&1; then
    echo "Starting Ollama service..."
    (nohup ollama serve >/dev/null 2>&1 &)
    sleep 3
fi

bash "{webui_runner}"
"""

_WINDOWS_LAUNCHER = """\
@echo off
rem {app_name} launcher (generated by the installer)
cd /d "%~dp0"
"{venv_rel}\\Scripts\\python.exe" "{app_entry}" %*
"""


def launcher_files(ctx: RunContext) -> list[GeneratedFile]:
    """Platform launch scripts. POSIX installs also get a web UI launcher."""
    settings = ctx.settings
    values = {
        "app_name": settings.app_name,
        "venv_rel": settings.venv_dir,
        "port": settings.webui_port,
        "webui_runner": settings.webui_runner,
    }

    if ctx.facts.is_windows:
        entry = settings.app_entry.replace("/", "\\")
        return [
            GeneratedFile(
                path="run.bat",
                content=_WINDOWS_LAUNCHER.format(app_entry=entry, **values),
                reason="app launcher",
            ),
        ]

    helper_args = ""
    if "helper" in ctx.artifacts:
        helper_args = f' \\\n    --audiotee-bin "{settings.helper_binary}"'
    return [
        GeneratedFile(
            path="run.sh",
            content=_POSIX_LAUNCHER.format(
                app_entry=settings.app_entry, helper_args=helper_args, **values,
            ),
            mode=0o755,
            reason="app launcher",
        ),
        GeneratedFile(
            path="start-webui.sh",
            content=_POSIX_WEBUI.format(**values),
            mode=0o755,
            reason="web UI launcher",
        ),
    ]


# ── macOS app bundle ────────────────────────────────────────────


_INFO_PLIST = """\
<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE plist PUBLIC "-//Apple//DTD PLIST 1.0//EN" "http://www.apple.com/DTDs/PropertyList-1.0.dtd">
<plist version="1.0">
<dict>
    <key>CFBundleName</key>
    <string>{app_name}</string>
    <key>CFBundleIdentifier</key>
    <string>{bundle_id}</string>
    <key>CFBundleVersion</key>
    <string>{app_version}</string>
    <key>CFBundlePackageType</key>
    <string>APPL</string>
    <key>CFBundleExecutable</key>
    <string>{app_name}</string>
    <key>LSMinimumSystemVersion</key>
    <string>{min_macos}</string>
    <key>NSHighResolutionCapable</key>
    <true/>
</dict>
</plist>
"""

# Opens Terminal, starts the web UI, and opens the browser once it answers
_BUNDLE_LAUNCHER = """\
#!/usr/bin/env bash
osascript <<'APPLESCRIPT'
tell application "Terminal"
    activate
    do script "cd '{install_path}' && echo 'Starting {app_name} web interface at {url}' && echo 'Close this window to stop the application.' && bash start-webui.sh & until curl -s {url}/api/health >/dev/null 2>&1; do sleep 1; done && open {url} && wait"
end tell
APPLESCRIPT
"""


def app_bundle_files(ctx: RunContext) -> list[GeneratedFile]:
    """``<applications_dir>/<app_name>.app``: Info.plist plus a launcher executable.

    Paths are absolute; the bundle lives outside the install directory.
    """
    settings = ctx.settings
    bundle = Path(settings.app_bundle_path()) / "Contents"
    return [
        GeneratedFile(
            path=str(bundle / "Info.plist"),
            content=_INFO_PLIST.format(
                app_name=settings.app_name,
                bundle_id=settings.bundle_id,
                app_version=settings.app_version,
                min_macos=settings.min_macos,
            ),
            reason="app bundle metadata",
        ),
        GeneratedFile(
            path=str(bundle / "MacOS" / settings.app_name),
            content=_BUNDLE_LAUNCHER.format(
                app_name=settings.app_name,
                install_path=ctx.install_path,
                url=f"http://127.0.0.1:{settings.webui_port}",
            ),
            mode=0o755,
            reason="app bundle launcher",
        ),
    ]


# ── Uninstaller ─────────────────────────────────────────────────


_POSIX_UNINSTALL = """\
#!/usr/bin/env bash
# {app_name} uninstaller (generated by the installer)

read -p "Are you sure you want to uninstall {app_name}? (y/N): " confirm
if [[ $confirm != [yY] ]]; then
    echo "Uninstall cancelled."
    exit 0
fi

echo "Stopping services..."
brew services stop ollama 2>/dev/null || true

echo "Removing application files..."
SCRIPT_DIR="$(cd "$(dirname "${{BASH_SOURCE[0]}}")" && pwd)"
cd "$HOME"
rm -rf "$SCRIPT_DIR"

echo "Removing desktop application..."
rm -rf "{app_bundle}"

echo "{app_name} has been uninstalled."
echo "Homebrew, Python, and system dependencies were left installed."
"""

_WINDOWS_UNINSTALL = """\
@echo off
rem {app_name} uninstaller (generated by the installer)
set /p confirm="Are you sure you want to uninstall {app_name}? (y/N): "
if /i not "%confirm%"=="y" (
    echo Uninstall cancelled.
    exit /b 0
)
cd /d "%USERPROFILE%"
rmdir /s /q "{install_path}"
echo {app_name} has been uninstalled.
echo Python, Git and system dependencies were left installed.
"""


def uninstaller_file(ctx: RunContext) -> GeneratedFile:
    if ctx.facts.is_windows:
        return GeneratedFile(
            path="uninstall.bat",
            content=_WINDOWS_UNINSTALL.format(
                app_name=ctx.settings.app_name, install_path=ctx.install_path,
            ),
            reason="uninstaller",
        )
    return GeneratedFile(
        path="uninstall.sh",
        content=_POSIX_UNINSTALL.format(
            app_name=ctx.settings.app_name, app_bundle=ctx.settings.app_bundle_path(),
        ),
        mode=0o755,
        reason="uninstaller",
    )


def next_steps(ctx: RunContext) -> list[str]:
    """Instructions printed after a successful install."""
    settings = ctx.settings
    if ctx.facts.is_windows:
        launcher, uninstall = "run.bat", "uninstall.bat"
    else:
        launcher, uninstall = "./run.sh", "./uninstall.sh"

    steps = [
        f"cd \"{ctx.install_path}\"",
        f"Start {settings.app_name}: {launcher}",
    ]
    if "write_app_bundle" in ctx.artifacts:
        steps.append(f"Or double-click {settings.app_name} in {settings.applications_dir}")
    if not ctx.facts.is_windows:
        steps.append(
            f"Web interface: ./start-webui.sh then open http://127.0.0.1:{settings.webui_port}"
        )
    if "write_api_key" in ctx.artifacts:
        steps.append(f"Add your Claude API key to: {ctx.artifacts['write_api_key']}")
    steps += [
        f"Preferences live in {PREFERENCES_PATH}",
        f"To uninstall: {uninstall}",
    ]
    if ctx.warnings:
        steps.append("Review the warnings above; optional components can be added later.")
    return steps
