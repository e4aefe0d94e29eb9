"""
Action and Receipt models — what a step asks for and what it got back.

A step builds exactly one Action. The adapter registry dispatches it and
always hands back a Receipt; a failing tool is a failed receipt, never
an exception.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

# Params whose values must never reach a log line
SECRET_PARAMS = frozenset({"secret_env", "secret_headers"})


class Action(BaseModel):
    """One adapter operation requested by a step.

    Params are adapter-specific: ``argv``/``command`` for shell,
    ``operation`` for filesystem, git and http, ``task`` for internal.
    """

    id: str
    step: str                       # owning step name
    adapter: str                    # registry key of the handling adapter
    description: str = ""
    params: dict[str, Any] = Field(default_factory=dict)

    def loggable_params(self) -> dict[str, Any]:
        """Params with secret values masked and callables shown by name."""
        shown: dict[str, Any] = {}
        for key, value in self.params.items():
            if key in SECRET_PARAMS:
                shown[key] = {k: "***" for k in value} if isinstance(value, dict) else "***"
            elif callable(value):
                shown[key] = getattr(value, "__name__", type(value).__name__)
            else:
                shown[key] = value
        return shown


class Receipt(BaseModel):
    """Result of dispatching one Action."""

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"
    duration_ms: int = 0

    output: str = ""
    error: str | None = None
    return_code: int | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        return self.status == "failed"

    @property
    def rehearsal(self) -> bool:
        """Answered without running anything (mock mode)."""
        return bool(self.metadata.get("mock"))

    @property
    def last_line(self) -> str:
        """Last non-blank output line, used as the step's success message."""
        lines = [line for line in self.output.splitlines() if line.strip()]
        return lines[-1].strip() if lines else ""

    @classmethod
    def success(cls, adapter: str, action_id: str, output: str = "", **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="ok", output=output, **kwargs)

    @classmethod
    def failure(cls, adapter: str, action_id: str, error: str, **kwargs: Any) -> Receipt:
        return cls(adapter=adapter, action_id=action_id, status="failed", error=error, **kwargs)
