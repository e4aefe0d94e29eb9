"""
Service readiness — bounded polling of a local HTTP endpoint.

A freshly started service is polled a fixed number of times with a
fixed delay. Exhaustion is reported to the caller, never raised.
"""

from __future__ import annotations

import logging
import subprocess
import sys
import time
import urllib.error
import urllib.request
from collections.abc import Callable

logger = logging.getLogger(__name__)


def http_ok(url: str, timeout: float = 2.0) -> bool:
    """True when ``url`` answers with a 2xx status."""
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:
            return 200 <= resp.getcode() < 300
    except (urllib.error.URLError, OSError, ValueError):
        return False


def wait_for_service(
    url: str,
    attempts: int = 30,
    delay: float = 1.0,
    check: Callable[[str], bool] = http_ok,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll ``url`` until it answers or attempts run out.

    Returns:
        True if the service became ready, False on exhaustion.
    """
    for attempt in range(1, attempts + 1):
        if check(url):
            logger.info("Service at %s ready after %d attempt(s)", url, attempt)
            return True
        if attempt < attempts:
            sleep(delay)

    logger.warning("Service at %s not ready after %d attempts", url, attempts)
    return False


def start_detached(argv: list[str]) -> subprocess.Popen:
    """Start a long-running service that outlives the installer."""
    kwargs: dict = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
    }
    if sys.platform == "win32":
        kwargs["creationflags"] = (
            subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
        )
    else:
        kwargs["start_new_session"] = True
    logger.info("Starting %s", " ".join(argv))
    return subprocess.Popen(argv, **kwargs)
