"""
Internal task adapter — in-process work that still goes through receipts.

Some steps have no external tool to drive: validating the credential,
checking preflight facts, waiting for a service. Routing them through
an adapter keeps one execution path for every step, including mock
mode and the never-raise contract.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt

logger = logging.getLogger(__name__)

Task = Callable[[], Any]


class TaskFailed(Exception):
    """Raised by a task to fail its step with a clean message."""


class InternalTaskAdapter(Adapter):
    """Run a Python callable as an action.

    Action params:
        task (callable): Zero-argument callable. Its return value is
            stored in ``receipt.metadata["value"]``. Raising fails the
            receipt with the exception message.
    """

    @property
    def name(self) -> str:
        return "internal"

    def is_available(self) -> bool:
        return True

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not callable(context.param("task")):
            return False, "Missing required param: 'task' (callable)"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        task: Task = context.param("task")
        try:
            value = task()
        except TaskFailed as e:
            return self._fail(context, str(e))
        except Exception as e:
            logger.debug("Task %s raised", context.action.id, exc_info=True)
            return self._fail(context, f"{type(e).__name__}: {e}")

        return self._ok(
            context,
            output=value if isinstance(value, str) else "",
            metadata={"value": value},
        )
