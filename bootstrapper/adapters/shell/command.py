"""
Shell command adapter — run external programs and capture output.

This is the most fundamental adapter: package managers, runtimes and
system tools are all driven through it. The adapter only reports exit
status and text; classifying a failure is the executor's job.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time
from pathlib import Path

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt
from bootstrapper.core.services.progress import ProcessWatcher, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 1800
_TAIL_CHARS = 2000


def _tail(text: str) -> str:
    text = text.strip()
    return text[-_TAIL_CHARS:] if len(text) > _TAIL_CHARS else text


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        argv (list[str]): Program and arguments (preferred).
        command (str): Command line run through the shell, when argv is absent.
        timeout (int): Timeout in seconds (default: 1800).
        cwd (str): Working directory (default: the current process directory).
        env (dict): Extra environment variables.
        secret_env (dict): Extra environment variables that are never logged.
        stdout_path (str): Write stdout to this file on success.
        ok_codes (list[int]): Exit codes treated as success (default: [0]).
        progress (bool): Report liveness while the process runs.
    """

    def __init__(self, progress: ProgressCallback | None = None):
        self._progress = progress

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        argv = context.param("argv")
        command = context.param("command", "")
        if not argv and not command:
            return False, "Missing required param: 'argv' or 'command'"
        if argv is not None and not isinstance(argv, (list, tuple)):
            return False, "Param 'argv' must be a list"

        cwd = context.param("cwd")
        if cwd and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        argv = context.param("argv")
        command = context.param("command", "")
        target = [str(a) for a in argv] if argv else command
        display = " ".join(target) if argv else command
        timeout = context.param("timeout", DEFAULT_TIMEOUT)
        cwd = context.param("cwd") or None
        ok_codes = set(context.param("ok_codes", [0]))

        env = None
        extra_env = {**context.param("env", {}), **context.param("secret_env", {})}
        if extra_env:
            env = {**os.environ, **{k: str(v) for k, v in extra_env.items()}}

        logger.debug("Executing: %s (cwd=%s)", display, cwd)
        start = time.monotonic()

        try:
            proc = subprocess.Popen(
                target,
                shell=not argv,
                cwd=cwd,
                env=env,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
            )
        except (OSError, ValueError) as e:
            return self._fail(
                context,
                f"Cannot start command: {e}",
                metadata={"command": display},
            )

        try:
            if self._progress and context.param("progress", False):
                label = context.action.description or display
                with ProcessWatcher(proc, label, self._progress):
                    stdout, stderr = proc.communicate(timeout=timeout)
            else:
                stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            proc.kill()
            proc.communicate()
            return self._fail(
                context,
                f"Command timed out after {timeout}s",
                metadata={"command": display, "timeout": timeout},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        rc = proc.returncode

        if rc not in ok_codes:
            return self._fail(
                context,
                _tail(stderr) or _tail(stdout) or f"Command exited with code {rc}",
                return_code=rc,
                duration_ms=elapsed_ms,
                metadata={"command": display, "stdout": _tail(stdout)},
            )

        stdout_path = context.param("stdout_path")
        if stdout_path:
            try:
                Path(stdout_path).parent.mkdir(parents=True, exist_ok=True)
                Path(stdout_path).write_text(stdout, encoding="utf-8")
            except OSError as e:
                return self._fail(
                    context,
                    f"Cannot write {stdout_path}: {e}",
                    return_code=rc,
                    metadata={"command": display},
                )

        return self._ok(
            context,
            output=stdout.strip(),
            return_code=rc,
            duration_ms=elapsed_ms,
            metadata={"command": display, "stderr": _tail(stderr)},
        )
