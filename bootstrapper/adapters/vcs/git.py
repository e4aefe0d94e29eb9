"""
Git adapter — source fetch through the git CLI.

The clone is shallow, pinned to one branch, and authenticated only
through transient ``GIT_CONFIG_*`` environment variables, so the token
never reaches argv, the process list, or ``.git/config``. After the
clone the origin URL is reset to the plain repository URL.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt

logger = logging.getLogger(__name__)


class GitAdapter(Adapter):
    """Git operations.

    Action params:
        operation (str): 'clone'.
        url (str): Unauthenticated repository URL.
        branch (str): Branch to check out.
        dest (str): Target directory (must be empty or absent).
        depth (int): Clone depth (default: 1).
        git (str): Git executable (default: 'git' from PATH).
        secret_env (dict): Auth environment, never logged.
        timeout (int): Timeout in seconds (default: 900).
    """

    @property
    def name(self) -> str:
        return "git"

    def is_available(self) -> bool:
        return shutil.which("git") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.param("operation", "")
        if operation != "clone":
            return False, f"Unknown operation '{operation}'. Valid: clone"
        for key in ("url", "branch", "dest"):
            if not context.param(key):
                return False, f"Missing required param: '{key}'"

        dest = Path(context.param("dest"))
        if dest.exists() and any(dest.iterdir()):
            return False, f"Destination is not empty: {dest}"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        try:
            return self._clone(context)
        except subprocess.TimeoutExpired as e:
            return self._fail(context, f"git timed out after {e.timeout}s")
        except Exception as e:
            return self._fail(context, f"Git error: {e}")

    # ── Operations ──────────────────────────────────────────────

    def _clone(self, ctx: ExecutionContext) -> Receipt:
        url = ctx.param("url")
        branch = ctx.param("branch")
        dest = ctx.param("dest")
        depth = int(ctx.param("depth", 1))
        timeout = ctx.param("timeout", 900)

        env = {
            **os.environ,
            "GIT_TERMINAL_PROMPT": "0",
            **ctx.param("secret_env", {}),
        }

        logger.info("Cloning %s (branch %s) into %s", url, branch, dest)
        result = self._git(
            ctx,
            ["clone", "--depth", str(depth), "--single-branch", "--branch", branch, url, dest],
            env=env,
            timeout=timeout,
        )
        if result.returncode != 0:
            return self._fail(
                ctx,
                result.stderr.strip() or f"git clone exited with code {result.returncode}",
                return_code=result.returncode,
                metadata={"url": url, "branch": branch},
            )

        # Leave no credential-bearing remote behind
        reset = self._git(ctx, ["-C", dest, "remote", "set-url", "origin", url], timeout=30)
        if reset.returncode != 0:
            logger.warning("Could not reset origin URL in %s: %s", dest, reset.stderr.strip())

        return self._ok(
            ctx,
            output=f"Cloned {url}@{branch}",
            return_code=0,
            metadata={"url": url, "branch": branch, "dest": dest, "method": "git"},
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _git(
        self,
        ctx: ExecutionContext,
        args: list[str],
        env: dict[str, str] | None = None,
        timeout: int = 30,
    ) -> subprocess.CompletedProcess:
        git = ctx.param("git") or "git"
        return subprocess.run(
            [git, *args],
            capture_output=True,
            text=True,
            env=env,
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
