"""
GitHub REST helpers — the fetch service's HTTP surface.

Thin wrappers over ``urllib.request``: the repository metadata request
used as the credential liveness check, the archive URL used when git
is unavailable, and the auth material for both transports.
"""

from __future__ import annotations

import base64
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

API_ROOT = "https://api.github.com"
_USER_AGENT = "transcriber-bootstrap/0.1"
_AUTH_HEADER_KEY = "http.https://github.com/.extraheader"


@dataclass
class ApiResponse:
    status: int
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def repo_metadata_url(repository: str) -> str:
    return f"{API_ROOT}/repos/{repository}"


def archive_url(repository: str, branch: str) -> str:
    return f"{API_ROOT}/repos/{repository}/zipball/{branch}"


def auth_headers(token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
    }


def git_auth_env(token: str) -> dict[str, str]:
    """Transient git config carrying the token as an HTTP header.

    Git reads ``GIT_CONFIG_COUNT``/``KEY_n``/``VALUE_n`` as command-line
    config, so nothing is written to disk and the token is not in argv.
    """
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode()
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": _AUTH_HEADER_KEY,
        "GIT_CONFIG_VALUE_0": f"AUTHORIZATION: basic {basic}",
    }


def get_repository(repository: str, token: str, timeout: float = 15.0) -> ApiResponse:
    """GET the repository metadata. One request, no retries.

    Returns an ApiResponse; network failures come back with status 0.
    """
    url = repo_metadata_url(repository)
    req = urllib.request.Request(
        url,
        headers={"User-Agent": _USER_AGENT, **auth_headers(token)},
    )
    logger.debug("GET %s", url)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            body = resp.read().decode("utf-8", errors="replace")
            try:
                data = json.loads(body) if body else {}
            except json.JSONDecodeError:
                data = {}
            return ApiResponse(status=resp.getcode(), data=data if isinstance(data, dict) else {})
    except urllib.error.HTTPError as e:
        return ApiResponse(status=e.code, error=str(e.reason))
    except (urllib.error.URLError, OSError) as e:
        reason = getattr(e, "reason", e)
        return ApiResponse(status=0, error=str(reason)[:200])
