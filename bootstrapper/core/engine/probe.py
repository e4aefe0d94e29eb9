"""
Capability probe — is this capability already satisfied?

The probe is a pure query: it looks at the search path, well-known
install locations, the filesystem, read-only commands, run context
fields, and local HTTP endpoints. "Not found" is an answer, never an
exception.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path
from typing import Any

from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.step import Capability, CapabilityKind, ProbeResult
from bootstrapper.core.services.service_wait import http_ok

logger = logging.getLogger(__name__)

_MAX_LISTING = 50
_VERSION_RE = re.compile(r"(\d+\.\d+(?:\.\d+)?)")


def render(template: str, values: dict[str, Any]) -> str | None:
    """Format a template; None when a field is not yet resolvable."""
    try:
        return template.format_map(values)
    except (KeyError, IndexError, ValueError):
        return None


def _lookup(ctx: RunContext, dotted: str) -> Any:
    value: Any = ctx
    for part in dotted.split("."):
        if isinstance(value, dict):
            value = value.get(part)
        else:
            value = getattr(value, part, None)
        if value is None:
            return None
    return value


class CapabilityProbe:
    """Answer capability queries against the live host.

    The command runner, executable lookup and HTTP check are injectable
    so tests never touch the real system.
    """

    def __init__(
        self,
        which: Callable[[str], str | None] = shutil.which,
        run: Callable[..., subprocess.CompletedProcess] = subprocess.run,
        http_check: Callable[[str], bool] = http_ok,
        command_timeout: int = 20,
    ):
        self._which = which
        self._run = run
        self._http_check = http_check
        self._command_timeout = command_timeout

    def is_satisfied(self, capability: Capability, ctx: RunContext) -> ProbeResult:
        handlers = {
            CapabilityKind.TOOL: self._tool,
            CapabilityKind.DIRECTORY: self._directory,
            CapabilityKind.FILE: self._file,
            CapabilityKind.COMMAND: self._command,
            CapabilityKind.CONTEXT: self._context,
            CapabilityKind.SERVICE: self._service,
        }
        try:
            result = handlers[capability.kind](capability, ctx)
        except Exception as e:
            logger.debug("Probe %s errored", capability.id, exc_info=True)
            result = ProbeResult(satisfied=False, details={"error": str(e)})

        logger.debug(
            "Probe %s (%s): %s", capability.id, capability.kind.value,
            "satisfied" if result.satisfied else "not satisfied",
        )
        return result

    # ── Kinds ───────────────────────────────────────────────────

    def _tool(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        values = ctx.template_vars()
        name = render(cap.target, values)
        wanted = render(cap.version, values) or ""
        checked: list[str] = []

        if name:
            found = self._which(name)
            checked.append(name)
            if found and self._version_ok(found, wanted):
                return ProbeResult(satisfied=True, details={"path": found, "source": "path"})

        for template in cap.fallback_paths:
            candidate = render(template, values)
            if not candidate:
                continue
            candidate = os.path.expanduser(candidate)
            checked.append(candidate)
            if (
                Path(candidate).is_file()
                and os.access(candidate, os.X_OK)
                and self._version_ok(candidate, wanted)
            ):
                return ProbeResult(
                    satisfied=True, details={"path": candidate, "source": "fallback"},
                )

        details: dict[str, Any] = {"checked": checked}
        if wanted:
            details["version"] = wanted
        return ProbeResult(satisfied=False, details=details)

    def _version_ok(self, executable: str, wanted: str) -> bool:
        """True when ``executable --version`` reports ``wanted`` or a patch of it."""
        if not wanted:
            return True
        try:
            result = self._run(
                [executable, "--version"],
                capture_output=True,
                text=True,
                timeout=self._command_timeout,
            )
        except (OSError, subprocess.TimeoutExpired):
            return False
        match = _VERSION_RE.search(f"{result.stdout or ''} {result.stderr or ''}")
        if not match:
            logger.debug("%s printed no version", executable)
            return False
        version = match.group(1)
        return version == wanted or version.startswith(wanted + ".")

    def _directory(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        path = render(cap.target, ctx.template_vars())
        if not path:
            return ProbeResult(satisfied=False, details={"error": "unresolved path"})
        target = Path(path).expanduser()
        if not target.is_dir():
            return ProbeResult(satisfied=False, details={"path": str(target), "exists": target.exists()})

        entries = sorted(p.name for p in target.iterdir())
        return ProbeResult(
            satisfied=True,
            details={
                "path": str(target),
                "entries": entries[:_MAX_LISTING],
                "count": len(entries),
                "empty": not entries,
            },
        )

    def _file(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        path = render(cap.target, ctx.template_vars())
        if not path:
            return ProbeResult(satisfied=False, details={"error": "unresolved path"})
        target = Path(path).expanduser()
        return ProbeResult(satisfied=target.is_file(), details={"path": str(target)})

    def _command(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        values = ctx.template_vars()
        argv = [render(arg, values) for arg in cap.argv]
        if not argv or any(arg is None for arg in argv):
            return ProbeResult(satisfied=False, details={"error": "unresolved command"})

        try:
            result = self._run(
                argv,
                capture_output=True,
                text=True,
                timeout=self._command_timeout,
                stdin=subprocess.DEVNULL,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            return ProbeResult(satisfied=False, details={"error": str(e)})

        return ProbeResult(
            satisfied=result.returncode == 0,
            details={"return_code": result.returncode, "output": (result.stdout or "").strip()},
        )

    def _context(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        value = _lookup(ctx, cap.target)
        return ProbeResult(satisfied=bool(value), details={"field": cap.target})

    def _service(self, cap: Capability, ctx: RunContext) -> ProbeResult:
        url = render(cap.target, ctx.template_vars())
        if not url:
            return ProbeResult(satisfied=False, details={"error": "unresolved url"})
        return ProbeResult(satisfied=self._http_check(url), details={"url": url})
