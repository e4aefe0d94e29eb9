"""
Progress watcher — liveness polling for long external processes.

Package installs and clones can run for minutes without output. The
watcher runs on a background thread, polls the process, and reports
elapsed time to a callback so the UI can refresh a progress
indicator. It only reads the process handle; it never touches run
state and it stops on its own once the process exits.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, float], None]


class Pollable(Protocol):
    def poll(self) -> int | None: ...


class ProcessWatcher:
    """Poll a running process and report elapsed seconds.

    Usage::

        with ProcessWatcher(proc, "pip install", on_tick):
            proc.communicate(timeout=...)
    """

    def __init__(
        self,
        process: Pollable,
        label: str,
        on_tick: ProgressCallback,
        interval: float = 0.5,
    ):
        self._process = process
        self._label = label
        self._on_tick = on_tick
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._started = 0.0
        self.ticks = 0

    def start(self) -> None:
        self._started = time.monotonic()
        self._thread = threading.Thread(
            target=self._run, name=f"watch:{self._label}", daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=self._interval * 4)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.is_set():
            if self._process.poll() is not None:
                break
            try:
                self._on_tick(self._label, time.monotonic() - self._started)
            except Exception as e:
                logger.debug("Progress callback failed: %s", e)
            self.ticks += 1
            self._stop.wait(self._interval)

    def __enter__(self) -> ProcessWatcher:
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()
