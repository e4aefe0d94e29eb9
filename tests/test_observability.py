"""
Tests for logging configuration.
"""

import logging

import pytest

from bootstrapper.core.observability.logging_config import (
    FILE_ENV_VAR,
    FILE_LEVEL_ENV_VAR,
    LEVEL_ENV_VAR,
    resolve_level,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestResolveLevel:
    def test_precedence(self, monkeypatch):
        monkeypatch.setenv(LEVEL_ENV_VAR, "INFO")
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"
        assert resolve_level(verbose=True, quiet=True) == "INFO"
        assert resolve_level(quiet=True) == "ERROR"
        assert resolve_level() == "INFO"

    def test_default_warning(self, monkeypatch):
        monkeypatch.delenv(LEVEL_ENV_VAR, raising=False)
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_only(self, monkeypatch):
        monkeypatch.delenv(FILE_ENV_VAR, raising=False)
        setup_logging("INFO")
        root = logging.getLogger()
        assert len(root.handlers) == 1
        assert root.level == logging.INFO

    def test_unknown_level_falls_back_to_warning(self, monkeypatch):
        monkeypatch.delenv(FILE_ENV_VAR, raising=False)
        setup_logging("CHATTY")
        assert logging.getLogger().level == logging.WARNING

    def test_file_from_env(self, tmp_path, monkeypatch):
        log_file = tmp_path / "bootstrap.log"
        monkeypatch.setenv(FILE_ENV_VAR, str(log_file))
        monkeypatch.setenv(FILE_LEVEL_ENV_VAR, "DEBUG")
        setup_logging("WARNING")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 2

        logging.getLogger("bootstrapper.test").debug("written to file only")
        for handler in root.handlers:
            handler.flush()
        assert "written to file only" in log_file.read_text()

    def test_third_party_quieted(self, monkeypatch):
        monkeypatch.delenv(FILE_ENV_VAR, raising=False)
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING
