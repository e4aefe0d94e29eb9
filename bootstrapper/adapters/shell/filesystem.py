"""
Filesystem adapter — directory and file operations with receipts.

Provides a receipt-returning interface for the filesystem work the
installer does itself: preparing the install directory, seeding files
from templates shipped in the checkout, and writing generated artifacts.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt

logger = logging.getLogger(__name__)

_VALID_OPS = {"reset_dir", "copy", "write_many"}


class FilesystemAdapter(Adapter):
    """File and directory operations.

    Action params:
        operation (str): One of 'reset_dir', 'copy', 'write_many'.
        path (str): Target path (relative to working_dir or absolute).
        source (str): File to copy from (for 'copy').
        if_absent (bool): Leave an existing target untouched (for 'copy').
        files (list[dict]): Entries with path/content/mode/if_absent (for 'write_many').
    """

    @property
    def name(self) -> str:
        return "filesystem"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.param("operation", "")
        if not operation:
            return False, "Missing required param: 'operation'"
        if operation not in _VALID_OPS:
            return False, f"Unknown operation '{operation}'. Valid: {', '.join(sorted(_VALID_OPS))}"

        if operation == "write_many":
            files = context.param("files")
            if not isinstance(files, list) or not files:
                return False, "Missing required param: 'files' for write_many operation"
            return True, ""

        if not context.param("path"):
            return False, "Missing required param: 'path'"
        if operation == "copy" and not context.param("source"):
            return False, "Missing required param: 'source' for copy operation"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        operation = context.param("operation")
        try:
            if operation == "reset_dir":
                return self._reset_dir(context, self._resolve(context, context.param("path")))
            elif operation == "copy":
                return self._copy(
                    context,
                    self._resolve(context, context.param("source")),
                    self._resolve(context, context.param("path")),
                )
            elif operation == "write_many":
                return self._write_many(context, context.param("files"))
            else:
                return self._fail(context, f"Unknown operation: {operation}")
        except Exception as e:
            return self._fail(
                context,
                f"Filesystem error: {e}",
                metadata={"operation": operation, "path": context.param("path", "")},
            )

    # ── Operations ──────────────────────────────────────────────

    def _reset_dir(self, ctx: ExecutionContext, target: Path) -> Receipt:
        """Remove the directory entirely, then recreate it empty."""
        removed = False
        if target.exists() or target.is_symlink():
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
            removed = True
            logger.info("Removed existing directory %s", target)
        target.mkdir(parents=True, exist_ok=False)
        return self._ok(
            ctx,
            f"Directory ready: {target}",
            metadata={"path": str(target), "removed": removed},
        )

    def _copy(self, ctx: ExecutionContext, source: Path, target: Path) -> Receipt:
        if ctx.param("if_absent") and target.exists():
            logger.debug("Keeping existing %s", target)
            return self._ok(
                ctx, f"Kept existing {target}", metadata={"path": str(target), "copied": False},
            )
        if not source.is_file():
            return self._fail(ctx, f"Source file not found: {source}")
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, target)
        return self._ok(
            ctx, f"Copied {source.name} to {target}", metadata={"path": str(target), "copied": True},
        )

    def _write_many(self, ctx: ExecutionContext, entries: list[dict[str, Any]]) -> Receipt:
        written: list[str] = []
        kept: list[str] = []
        for entry in entries:
            target = self._resolve(ctx, entry["path"])
            if entry.get("if_absent") and target.exists():
                kept.append(str(target))
                logger.debug("Keeping existing %s", target)
                continue
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(entry.get("content", ""), encoding="utf-8")
            mode = entry.get("mode")
            if mode is not None:
                target.chmod(mode)
            written.append(str(target))

        return self._ok(
            ctx,
            f"Written {len(written)} file(s), kept {len(kept)}",
            metadata={"written": written, "kept": kept},
        )

    @staticmethod
    def _resolve(ctx: ExecutionContext, raw_path: str) -> Path:
        target = Path(raw_path)
        if not target.is_absolute():
            target = Path(ctx.working_dir) / target
        return target
