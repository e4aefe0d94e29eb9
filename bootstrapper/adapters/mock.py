"""
Mock adapter — scripted stand-in for shell, filesystem, git and http.

Tests register one per adapter name to drive whole plans without
touching package managers, the network or the install directory.
Every call is logged; responses can be scripted per action or step.
"""

from __future__ import annotations

from bootstrapper.adapters.base import Adapter, ExecutionContext
from bootstrapper.core.models.action import Receipt


class MockAdapter(Adapter):
    """Records calls and answers them.

    Unscripted actions succeed with a receipt marked ``mock``, so the
    executor treats them like a rehearsal and skips verification.
    """

    def __init__(self, adapter_name: str = "mock"):
        self._name = adapter_name
        self._responses: dict[str, Receipt] = {}
        self._call_log: list[ExecutionContext] = []

    @property
    def name(self) -> str:
        return self._name

    @property
    def call_log(self) -> list[ExecutionContext]:
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    def called_steps(self) -> list[str]:
        return [c.action.step for c in self._call_log]

    def is_available(self) -> bool:
        return True

    def set_response(self, key: str, receipt: Receipt) -> None:
        """Answer the action ID or step name ``key`` with ``receipt``."""
        self._responses[key] = receipt

    def set_failure(self, key: str, error: str = "Mock failure", return_code: int = 1) -> None:
        self._responses[key] = Receipt.failure(
            adapter=self._name, action_id=key, error=error, return_code=return_code,
        )

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        self._call_log.append(context)

        for key in (context.action.id, context.action.step):
            if key in self._responses:
                return self._responses[key].model_copy(deep=True)

        return Receipt.success(
            adapter=self._name,
            action_id=context.action.id,
            output=f"[mock] {context.action.description or context.action.id}",
            return_code=0,
            metadata={"mock": True},
        )

    def reset(self) -> None:
        self._call_log.clear()
        self._responses.clear()
