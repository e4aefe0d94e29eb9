"""
Tests for the adapter layer — registry dispatch and each adapter.
"""

import io
import subprocess
import sys
import urllib.error
import urllib.request
import zipfile
from pathlib import Path

import pytest

from bootstrapper.adapters.base import ExecutionContext
from bootstrapper.adapters.internal import InternalTaskAdapter, TaskFailed
from bootstrapper.adapters.mock import MockAdapter
from bootstrapper.adapters.net.download import HttpAdapter
from bootstrapper.adapters.registry import AdapterRegistry, default_registry
from bootstrapper.adapters.shell.command import ShellCommandAdapter
from bootstrapper.adapters.shell.filesystem import FilesystemAdapter
from bootstrapper.adapters.vcs.git import GitAdapter
from bootstrapper.core.models.action import Action, Receipt


def _action(adapter: str, **params) -> Action:
    return Action(id="test", step="test", adapter=adapter, params=params)


def _ctx(adapter: str, working_dir=".", **params) -> ExecutionContext:
    action = _action(adapter, **params)
    return ExecutionContext(action=action, working_dir=str(working_dir), params=action.params)


# ── Registry ────────────────────────────────────────────────────


class TestAdapterRegistry:
    def test_default_registry(self):
        assert sorted(default_registry().names()) == [
            "filesystem", "git", "http", "internal", "shell",
        ]

    def test_unknown_adapter_fails(self):
        receipt = AdapterRegistry().execute_action(_action("nope"))
        assert receipt.failed
        assert "No adapter registered for 'nope'" in receipt.error

    def test_validation_failure(self):
        registry = AdapterRegistry()
        registry.register(ShellCommandAdapter())
        receipt = registry.execute_action(_action("shell"))
        assert receipt.failed
        assert receipt.error.startswith("Validation failed")

    def test_raising_adapter_becomes_failure(self):
        class Exploding(MockAdapter):
            def execute(self, context):
                raise RuntimeError("kaboom")

        registry = AdapterRegistry()
        registry.register(Exploding(adapter_name="shell"))
        receipt = registry.execute_action(_action("shell"))
        assert receipt.failed
        assert receipt.error == "Unexpected error: kaboom"

    def test_mock_mode_never_touches_adapters(self):
        shell = MockAdapter(adapter_name="shell")
        registry = AdapterRegistry(mock_mode=True)
        registry.register(shell)
        receipt = registry.execute_action(_action("shell", argv=["rm", "-rf", "/"]))

        assert receipt.ok
        assert receipt.rehearsal
        assert shell.call_count == 0

    def test_mock_mode_log_masks_secrets(self, caplog):
        registry = AdapterRegistry(mock_mode=True)
        with caplog.at_level("INFO", logger="bootstrapper.adapters.registry"):
            registry.execute_action(_action("git", secret_env={"GIT_CONFIG_VALUE_0": "ghp_secret"}))
        assert "ghp_secret" not in caplog.text
        assert "GIT_CONFIG_VALUE_0" in caplog.text

    def test_duration_is_recorded(self):
        registry = AdapterRegistry()
        registry.register(MockAdapter(adapter_name="shell"))
        receipt = registry.execute_action(_action("shell"))
        assert receipt.duration_ms >= 0
        assert receipt.ok


# ── Shell ───────────────────────────────────────────────────────


class TestShellCommandAdapter:
    def _run(self, tmp_path, **params):
        return ShellCommandAdapter().execute(_ctx("shell", tmp_path, **params))

    def test_requires_argv_or_command(self):
        valid, error = ShellCommandAdapter().validate(_ctx("shell"))
        assert not valid
        assert "argv" in error

    def test_missing_cwd_is_invalid(self, tmp_path):
        valid, _ = ShellCommandAdapter().validate(
            _ctx("shell", argv=["true"], cwd=str(tmp_path / "missing")),
        )
        assert not valid

    def test_success_captures_output(self, tmp_path):
        receipt = self._run(tmp_path, argv=[sys.executable, "-c", "print('hello')"])
        assert receipt.ok
        assert receipt.output == "hello"
        assert receipt.return_code == 0

    def test_non_zero_exit_fails_with_stderr(self, tmp_path):
        code = "import sys; sys.stderr.write('bad things'); sys.exit(3)"
        receipt = self._run(tmp_path, argv=[sys.executable, "-c", code])
        assert receipt.failed
        assert receipt.return_code == 3
        assert receipt.error == "bad things"

    def test_ok_codes(self, tmp_path):
        receipt = self._run(
            tmp_path, argv=[sys.executable, "-c", "import sys; sys.exit(3)"], ok_codes=[0, 3],
        )
        assert receipt.ok
        assert receipt.return_code == 3

    def test_without_cwd_runs_in_process_directory(self, tmp_path, monkeypatch):
        here = tmp_path / "here"
        elsewhere = tmp_path / "elsewhere"
        here.mkdir()
        elsewhere.mkdir()
        monkeypatch.chdir(here)
        receipt = self._run(elsewhere, argv=[sys.executable, "-c", "import os; print(os.getcwd())"])
        assert receipt.ok
        assert Path(receipt.output).resolve() == here.resolve()

    def test_cwd_param(self, tmp_path):
        receipt = self._run(
            tmp_path, argv=[sys.executable, "-c", "import os; print(os.getcwd())"], cwd=str(tmp_path),
        )
        assert Path(receipt.output).resolve() == tmp_path.resolve()

    def test_secret_env_reaches_process(self, tmp_path):
        code = "import os; print(os.environ['BOOT_SECRET'])"
        receipt = self._run(tmp_path, argv=[sys.executable, "-c", code], secret_env={"BOOT_SECRET": "s3"})
        assert receipt.output == "s3"
        assert "s3" not in receipt.metadata["command"]

    def test_stdout_path(self, tmp_path):
        target = tmp_path / "out" / "freeze.txt"
        receipt = self._run(
            tmp_path, argv=[sys.executable, "-c", "print('numpy==2.0')"], stdout_path=str(target),
        )
        assert receipt.ok
        assert target.read_text() == "numpy==2.0\n"

    def test_missing_program(self, tmp_path):
        receipt = self._run(tmp_path, argv=["definitely-not-a-real-program-xyz"])
        assert receipt.failed
        assert receipt.error.startswith("Cannot start command")

    def test_timeout(self, tmp_path):
        receipt = self._run(
            tmp_path, argv=[sys.executable, "-c", "import time; time.sleep(5)"], timeout=0.2,
        )
        assert receipt.failed
        assert "timed out" in receipt.error


# ── Filesystem ──────────────────────────────────────────────────


class TestFilesystemAdapter:
    def test_reset_dir_replaces_contents(self, tmp_path):
        target = tmp_path / "install"
        (target / "old").mkdir(parents=True)
        (target / "old" / "file.txt").write_text("x")

        receipt = FilesystemAdapter().execute(_ctx("filesystem", operation="reset_dir", path=str(target)))
        assert receipt.ok
        assert receipt.metadata["removed"] is True
        assert list(target.iterdir()) == []

    def test_reset_dir_creates_missing(self, tmp_path):
        target = tmp_path / "a" / "b"
        receipt = FilesystemAdapter().execute(_ctx("filesystem", operation="reset_dir", path=str(target)))
        assert receipt.metadata["removed"] is False
        assert target.is_dir()

    def test_write_many_respects_if_absent(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "prefs.json").write_text("{\"mine\": true}")
        files = [
            {"path": "config/prefs.json", "content": "{}", "if_absent": True},
            {"path": "run.sh", "content": "#!/bin/sh\n", "mode": 0o755},
        ]
        receipt = FilesystemAdapter().execute(
            _ctx("filesystem", tmp_path, operation="write_many", files=files),
        )

        assert receipt.ok
        assert (tmp_path / "config" / "prefs.json").read_text() == "{\"mine\": true}"
        assert (tmp_path / "run.sh").stat().st_mode & 0o777 == 0o755
        assert receipt.metadata["written"] == [str(tmp_path / "run.sh")]
        assert receipt.metadata["kept"] == [str(tmp_path / "config" / "prefs.json")]

    def test_write_many_accepts_absolute_paths(self, tmp_path):
        bundle = tmp_path / "Applications" / "App.app" / "Contents" / "Info.plist"
        receipt = FilesystemAdapter().execute(
            _ctx("filesystem", tmp_path / "install", operation="write_many",
                 files=[{"path": str(bundle), "content": "<plist/>"}]),
        )
        assert receipt.ok
        assert bundle.read_text() == "<plist/>"

    def test_copy_from_template(self, tmp_path):
        (tmp_path / "config").mkdir()
        (tmp_path / "config" / "key.txt-example").write_text("paste key here\n")
        receipt = FilesystemAdapter().execute(_ctx(
            "filesystem", tmp_path, operation="copy",
            source="config/key.txt-example", path="config/key.txt", if_absent=True,
        ))
        assert receipt.ok
        assert receipt.metadata["copied"] is True
        assert (tmp_path / "config" / "key.txt").read_text() == "paste key here\n"

    def test_copy_keeps_existing_target(self, tmp_path):
        (tmp_path / "key.txt").write_text("real-key")
        receipt = FilesystemAdapter().execute(_ctx(
            "filesystem", tmp_path, operation="copy",
            source="missing-template", path="key.txt", if_absent=True,
        ))
        assert receipt.ok
        assert receipt.metadata["copied"] is False
        assert (tmp_path / "key.txt").read_text() == "real-key"

    def test_copy_missing_source_fails(self, tmp_path):
        receipt = FilesystemAdapter().execute(_ctx(
            "filesystem", tmp_path, operation="copy", source="nope", path="key.txt",
        ))
        assert receipt.failed
        assert "Source file not found" in receipt.error

    @pytest.mark.parametrize("params,fragment", [
        ({}, "operation"),
        ({"operation": "explode"}, "Unknown operation"),
        ({"operation": "list", "path": "x"}, "Unknown operation"),
        ({"operation": "copy", "path": "x"}, "source"),
        ({"operation": "write_many", "files": []}, "files"),
    ])
    def test_validation(self, params, fragment):
        valid, error = FilesystemAdapter().validate(_ctx("filesystem", **params))
        assert not valid
        assert fragment in error


# ── Internal ────────────────────────────────────────────────────


class TestInternalTaskAdapter:
    def test_value_in_metadata(self):
        receipt = InternalTaskAdapter().execute(_ctx("internal", task=lambda: {"a": 1}))
        assert receipt.ok
        assert receipt.metadata["value"] == {"a": 1}
        assert receipt.output == ""

    def test_string_value_is_output(self):
        assert InternalTaskAdapter().execute(_ctx("internal", task=lambda: "done")).output == "done"

    def test_task_failed_message(self):
        def task():
            raise TaskFailed("service not ready")

        receipt = InternalTaskAdapter().execute(_ctx("internal", task=task))
        assert receipt.failed
        assert receipt.error == "service not ready"

    def test_unexpected_error(self):
        def task():
            raise KeyError("x")

        receipt = InternalTaskAdapter().execute(_ctx("internal", task=task))
        assert receipt.error.startswith("KeyError")

    def test_requires_callable(self):
        assert not InternalTaskAdapter().validate(_ctx("internal", task="nope"))[0]


# ── Git ─────────────────────────────────────────────────────────


class TestGitAdapter:
    def _params(self, dest):
        return {
            "operation": "clone",
            "url": "https://github.com/o/r.git",
            "branch": "master",
            "dest": str(dest),
            "secret_env": {"GIT_CONFIG_COUNT": "1"},
        }

    def test_non_empty_destination_is_invalid(self, tmp_path):
        (tmp_path / "file").write_text("")
        valid, error = GitAdapter().validate(_ctx("git", **self._params(tmp_path)))
        assert not valid
        assert "not empty" in error

    def test_clone_argv_and_origin_reset(self, tmp_path, monkeypatch):
        calls = []

        def run(argv, **kwargs):
            calls.append((argv, kwargs.get("env")))
            return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

        monkeypatch.setattr(subprocess, "run", run)
        dest = tmp_path / "src"
        receipt = GitAdapter().execute(_ctx("git", **self._params(dest)))

        assert receipt.ok
        assert receipt.metadata["method"] == "git"
        clone_argv, clone_env = calls[0]
        assert clone_argv[:6] == ["git", "clone", "--depth", "1", "--single-branch", "--branch"]
        assert clone_env["GIT_TERMINAL_PROMPT"] == "0"
        assert clone_env["GIT_CONFIG_COUNT"] == "1"
        assert calls[1][0] == ["git", "-C", str(dest), "remote", "set-url", "origin", "https://github.com/o/r.git"]

    def test_clone_failure(self, tmp_path, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run",
            lambda argv, **kw: subprocess.CompletedProcess(argv, 128, stdout="", stderr="fatal: auth"),
        )
        receipt = GitAdapter().execute(_ctx("git", **self._params(tmp_path / "src")))
        assert receipt.failed
        assert receipt.error == "fatal: auth"
        assert receipt.return_code == 128


# ── HTTP ────────────────────────────────────────────────────────


def _zip_bytes(entries: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


class TestHttpAdapter:
    def _serve(self, monkeypatch, payload: bytes, seen: list | None = None):
        def urlopen(request, timeout=None):
            if seen is not None:
                seen.append(request)
            return io.BytesIO(payload)

        monkeypatch.setattr(urllib.request, "urlopen", urlopen)

    def test_archive_strips_top_folder(self, tmp_path, monkeypatch):
        seen = []
        self._serve(monkeypatch, _zip_bytes({
            "owner-repo-abc123/README.md": "hi",
            "owner-repo-abc123/app/main.py": "print()",
        }), seen)
        dest = tmp_path / "install"
        receipt = HttpAdapter().execute(_ctx(
            "http", operation="archive", url="https://example.test/a.zip", dest=str(dest),
            strip_top=True, secret_headers={"Authorization": "Bearer t"},
        ))

        assert receipt.ok
        assert receipt.metadata["method"] == "archive"
        assert (dest / "app" / "main.py").read_text() == "print()"
        assert sorted(receipt.metadata["files"]) == ["README.md", "app/main.py"]
        assert seen[0].get_header("Authorization") == "Bearer t"

    def test_archive_refuses_escaping_entries(self, tmp_path, monkeypatch):
        self._serve(monkeypatch, _zip_bytes({"../evil.txt": "x"}))
        receipt = HttpAdapter().execute(_ctx(
            "http", operation="archive", url="https://example.test/a.zip", dest=str(tmp_path / "d"),
        ))
        assert receipt.failed
        assert "escapes destination" in receipt.error
        assert not (tmp_path / "evil.txt").exists()

    def test_bad_zip(self, tmp_path, monkeypatch):
        self._serve(monkeypatch, b"not a zip")
        receipt = HttpAdapter().execute(_ctx(
            "http", operation="archive", url="https://example.test/a.zip", dest=str(tmp_path / "d"),
        ))
        assert receipt.failed

    def test_http_error(self, tmp_path, monkeypatch):
        def urlopen(request, timeout=None):
            raise urllib.error.HTTPError(request.full_url, 404, "Not Found", {}, None)

        monkeypatch.setattr(urllib.request, "urlopen", urlopen)
        receipt = HttpAdapter().execute(_ctx(
            "http", operation="download", url="https://example.test/f", dest=str(tmp_path / "f"),
        ))
        assert receipt.failed
        assert receipt.return_code == 404
        assert receipt.error.startswith("HTTP 404")

    def test_download(self, tmp_path, monkeypatch):
        self._serve(monkeypatch, b"12345")
        dest = tmp_path / "f.bin"
        receipt = HttpAdapter().execute(_ctx(
            "http", operation="download", url="https://example.test/f", dest=str(dest),
        ))
        assert receipt.metadata["size"] == 5
        assert dest.read_bytes() == b"12345"


def test_receipt_models_are_plain_data():
    receipt = Receipt.success(adapter="shell", action_id="a", metadata={"stdout": "x"})
    assert receipt.model_dump()["metadata"] == {"stdout": "x"}
