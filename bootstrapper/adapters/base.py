"""
Adapter base — the protocol contract between engine and tools.

This defines the abstract interface that every adapter must implement.
The engine only talks to adapters through this protocol, never
directly to package managers, git, the network, or the filesystem.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from bootstrapper.core.models.action import Action, Receipt


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action.

    The action to perform plus the directory relative paths resolve
    against.
    """

    action: Action
    working_dir: str = "."
    params: dict[str, Any] = Field(default_factory=dict)

    def param(self, key: str, default: Any = None) -> Any:
        return self.params.get(key, default)


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, execute
        3. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'git', 'http')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def _fail(self, context: ExecutionContext, error: str, **kwargs: Any) -> Receipt:
        return Receipt.failure(
            adapter=self.name, action_id=context.action.id, error=error, **kwargs,
        )

    def _ok(self, context: ExecutionContext, output: str = "", **kwargs: Any) -> Receipt:
        return Receipt.success(
            adapter=self.name, action_id=context.action.id, output=output, **kwargs,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
