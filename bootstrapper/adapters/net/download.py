"""
HTTP adapter — downloads and archive fetches over urllib.

Used for the source archive fallback when git is unavailable and for
vendor driver packages. All requests are synchronous with a bounded
timeout.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import urllib.error
import urllib.request
import zipfile
from pathlib import Path, PurePosixPath

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt

logger = logging.getLogger(__name__)

_USER_AGENT = "transcriber-bootstrap/0.1"
_CHUNK = 64 * 1024


class HttpAdapter(Adapter):
    """Download files and zip archives.

    Action params:
        operation (str): 'download' or 'archive'.
        url (str): Source URL.
        dest (str): Target file ('download') or directory ('archive').
        headers (dict): Extra request headers.
        secret_headers (dict): Request headers that are never logged.
        strip_top (bool): Drop the single top-level folder of the archive.
        timeout (float): Socket timeout in seconds (default: 60).
    """

    @property
    def name(self) -> str:
        return "http"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        operation = context.param("operation", "")
        if operation not in ("download", "archive"):
            return False, f"Unknown operation '{operation}'. Valid: archive, download"
        if not context.param("url"):
            return False, "Missing required param: 'url'"
        if not context.param("dest"):
            return False, "Missing required param: 'dest'"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        url = context.param("url")
        try:
            if context.param("operation") == "download":
                dest = Path(context.param("dest"))
                size = self._fetch(context, dest)
                return self._ok(
                    context,
                    f"Downloaded {size} bytes to {dest}",
                    metadata={"url": url, "path": str(dest), "size": size},
                )
            return self._archive(context)
        except urllib.error.HTTPError as e:
            return self._fail(
                context,
                f"HTTP {e.code} fetching {url}: {e.reason}",
                return_code=e.code,
                metadata={"url": url},
            )
        except (urllib.error.URLError, OSError, zipfile.BadZipFile) as e:
            reason = getattr(e, "reason", e)
            return self._fail(context, f"Download failed for {url}: {reason}", metadata={"url": url})

    # ── Operations ──────────────────────────────────────────────

    def _archive(self, ctx: ExecutionContext) -> Receipt:
        dest = Path(ctx.param("dest"))
        strip_top = ctx.param("strip_top", False)

        with tempfile.TemporaryDirectory(prefix="bootstrap-dl-") as tmp:
            zip_path = Path(tmp) / "archive.zip"
            self._fetch(ctx, zip_path)
            extracted = self._extract(zip_path, dest, strip_top)

        return self._ok(
            ctx,
            f"Extracted {len(extracted)} file(s) into {dest}",
            metadata={
                "url": ctx.param("url"),
                "path": str(dest),
                "files": extracted,
                "method": "archive",
            },
        )

    # ── Helpers ─────────────────────────────────────────────────

    def _fetch(self, ctx: ExecutionContext, dest: Path) -> int:
        url = ctx.param("url")
        headers = {
            "User-Agent": _USER_AGENT,
            **ctx.param("headers", {}),
            **ctx.param("secret_headers", {}),
        }
        timeout = ctx.param("timeout", 60)
        logger.debug("Downloading %s -> %s", url, dest)

        dest.parent.mkdir(parents=True, exist_ok=True)
        req = urllib.request.Request(url, headers=headers)
        size = 0
        with urllib.request.urlopen(req, timeout=timeout) as resp, dest.open("wb") as out:
            while True:
                chunk = resp.read(_CHUNK)
                if not chunk:
                    break
                out.write(chunk)
                size += len(chunk)
        return size

    @staticmethod
    def _extract(zip_path: Path, dest: Path, strip_top: bool) -> list[str]:
        """Extract a zip into dest, refusing entries that escape it."""
        dest.mkdir(parents=True, exist_ok=True)
        root = dest.resolve()
        extracted: list[str] = []

        with zipfile.ZipFile(zip_path) as zf:
            for info in zf.infolist():
                parts = PurePosixPath(info.filename).parts
                if strip_top:
                    parts = parts[1:]
                if not parts:
                    continue
                target = (dest.joinpath(*parts)).resolve()
                if root not in target.parents and target != root:
                    raise OSError(f"Archive entry escapes destination: {info.filename}")
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as src, target.open("wb") as out:
                    shutil.copyfileobj(src, out)
                mode = (info.external_attr >> 16) & 0o777
                if mode:
                    target.chmod(mode)
                extracted.append("/".join(parts))

        return extracted
