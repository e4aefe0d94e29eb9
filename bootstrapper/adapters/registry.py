"""
Adapter registry — every step action is dispatched through here.

Steps never call adapters directly. The registry looks the adapter up
by name, validates the action, runs it, and turns anything an adapter
raises into a failed receipt. In mock (rehearsal) mode nothing runs:
each action is answered with a success receipt marked ``mock``.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Action, Receipt

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Adapters by name, plus the single dispatch path."""

    def __init__(self, mock_mode: bool = False):
        self._adapters: dict[str, Adapter] = {}
        self._mock_mode = mock_mode

    @property
    def mock_mode(self) -> bool:
        return self._mock_mode

    def register(self, adapter: Adapter) -> None:
        name = adapter.name
        if name in self._adapters:
            logger.warning("Overwriting existing adapter: %s", name)
        self._adapters[name] = adapter
        logger.debug("Registered adapter: %s", name)

    def names(self) -> list[str]:
        return sorted(self._adapters)

    def execute_action(self, action: Action, working_dir: str = ".") -> Receipt:
        """Dispatch ``action`` and return its receipt. Never raises."""
        if self._mock_mode:
            logger.info("[mock] %s:%s %s", action.adapter, action.id, action.loggable_params())
            return Receipt.success(
                adapter=action.adapter,
                action_id=action.id,
                output=f"[mock] {action.description or action.id}",
                metadata={"mock": True},
            )

        adapter = self._adapters.get(action.adapter)
        if adapter is None:
            return Receipt.failure(
                adapter=action.adapter,
                action_id=action.id,
                error=f"No adapter registered for '{action.adapter}'",
            )

        started = time.monotonic()
        context = ExecutionContext(action=action, working_dir=working_dir, params=action.params)
        logger.debug("Dispatching %s to %s: %s", action.id, action.adapter, action.loggable_params())

        try:
            is_valid, error_msg = adapter.validate(context)
        except Exception as e:
            return Receipt.failure(
                adapter=action.adapter, action_id=action.id, error=f"Validation error: {e}",
            )
        if not is_valid:
            return Receipt.failure(
                adapter=action.adapter, action_id=action.id, error=f"Validation failed: {error_msg}",
            )

        try:
            receipt = adapter.execute(context)
        except Exception as e:
            logger.error("Adapter %s raised during execution: %s", action.adapter, e)
            receipt = Receipt.failure(
                adapter=action.adapter, action_id=action.id, error=f"Unexpected error: {e}",
            )

        receipt.duration_ms = int((time.monotonic() - started) * 1000)
        return receipt


def default_registry(mock_mode: bool = False, progress: Any = None) -> AdapterRegistry:
    """Registry wired with every production adapter."""
    from bootstrapper.adapters.internal import InternalTaskAdapter
    from bootstrapper.adapters.net.download import HttpAdapter
    from bootstrapper.adapters.shell.command import ShellCommandAdapter
    from bootstrapper.adapters.shell.filesystem import FilesystemAdapter
    from bootstrapper.adapters.vcs.git import GitAdapter

    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(ShellCommandAdapter(progress=progress))
    registry.register(FilesystemAdapter())
    registry.register(GitAdapter())
    registry.register(HttpAdapter())
    registry.register(InternalTaskAdapter())
    return registry
