"""
Configuration loader — reads installer settings into a typed model.

Settings describe WHAT gets installed (repository, branch, runtime,
required files, generated artifacts). Every field has a default, so the
installer runs with no config file at all. An optional YAML file
overrides individual keys.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

# Env var naming an alternative settings file
CONFIG_ENV_VAR = "BOOTSTRAP_CONFIG"


class ConfigError(Exception):
    """Raised when installer configuration is invalid or unreadable."""


class InstallerSettings(BaseModel):
    """Static installer settings.

    Paths under ``install_dir`` and ``state_dir`` may start with ``~``.
    Paths in ``app_entry``, ``requirements`` and ``helper_binary``
    are relative to the install directory.
    """

    model_config = ConfigDict(extra="forbid")

    # ── Application identity ─────────────────────────────────────
    app_name: str = "PsycoPilot"
    app_version: str = "1.0.0"
    bundle_id: str = "com.psycopilot.app"
    repository: str = "gsnegovskiy/psycopilot"   # owner/name on GitHub
    branch: str = "master"
    token_env: str = "GITHUB_TOKEN"

    # ── Platform requirements ────────────────────────────────────
    runtime_version: str = "3.13"
    min_macos: str = "14.2"
    min_free_gb: float = 2.0

    # ── Locations ────────────────────────────────────────────────
    install_dir: str = "~/Applications/PsycoPilot"
    state_dir: str = "~/.bootstrapper"
    venv_dir: str = ".venv"
    applications_dir: str = "~/Applications"   # macOS app bundle goes here

    # ── Source layout ────────────────────────────────────────────
    app_entry: str = "application/audio-capture/transcribe_dual_database.py"
    requirements: list[str] = Field(default_factory=lambda: [
        "application/audio-capture/requirements.txt",
        "webui/requirements.txt",
    ])
    helper_binary: str = "provisioners/mac/new/bin/audiotee"
    webui_runner: str = "webui/run_webui.sh"
    webui_port: int = 7860
    api_key_template: str = "config/api-key.txt-example"
    api_key_file: str = "config/claude-api-key.txt"

    # ── Local model service ──────────────────────────────────────
    service_url: str = "http://127.0.0.1:11434/api/version"
    service_attempts: int = 30
    service_delay: float = 1.0
    default_provider: str = "ollama"
    default_model: str = "gpt-oss:20b"

    # ── Packages ─────────────────────────────────────────────────
    brew_packages: list[str] = Field(default_factory=lambda: ["pkg-config", "ollama"])
    virtual_audio_cask: str = "blackhole-2ch"
    vbcable_url: str = (
        "https://download.vb-audio.com/Download_CABLE/VBCABLE_Driver_Pack43.zip"
    )

    # ── Timeouts (seconds) ───────────────────────────────────────
    network_timeout: float = 15.0
    step_timeout: int = 1800
    clt_wait_seconds: int = 300
    clt_poll_interval: int = 5

    @property
    def repository_url(self) -> str:
        """Unauthenticated clone URL."""
        return f"https://github.com/{self.repository}.git"

    def default_install_path(self) -> str:
        return str(Path(os.path.expanduser(self.install_dir)))

    def state_path(self) -> Path:
        return Path(os.path.expanduser(self.state_dir))

    def app_bundle_path(self) -> str:
        return str(Path(os.path.expanduser(self.applications_dir)) / f"{self.app_name}.app")


def find_config_file(explicit: Path | None = None) -> Path | None:
    """Resolve the settings file: explicit path, then BOOTSTRAP_CONFIG, else none."""
    if explicit is not None:
        return explicit
    env_path = os.environ.get(CONFIG_ENV_VAR, "").strip()
    if env_path:
        return Path(env_path)
    return None


def load_settings(path: Path | None = None) -> InstallerSettings:
    """Load and validate installer settings.

    Args:
        path: Explicit path to a YAML settings file. If None, the
            BOOTSTRAP_CONFIG env var is consulted; with neither, the
            built-in defaults are returned.

    Returns:
        Validated InstallerSettings model.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    path = find_config_file(path)
    if path is None:
        logger.debug("No settings file, using defaults")
        return InstallerSettings()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading installer settings from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    # The YAML may wrap everything under an "installer" key or be flat
    settings_data = data.get("installer", data)
    if not isinstance(settings_data, dict):
        raise ConfigError(f"Expected 'installer' to be a mapping in {path}")

    try:
        settings = InstallerSettings.model_validate(settings_data)
    except Exception as e:
        raise ConfigError(f"Invalid installer configuration: {e}") from e

    logger.info("Loaded settings for '%s' from %s", settings.app_name, path)
    return settings
