"""
Outcome model — the classified result of one step.

Outcomes are what the sequencer reasons about. Receipts say what the
external tool did; outcomes say what that means for the run.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from bootstrapper.core.models.step import FailurePolicy


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    WARNED = "warned"
    FAILED = "failed"


class Outcome(BaseModel):
    """Result of executing a step."""

    step: str
    kind: OutcomeKind
    message: str = ""
    policy: FailurePolicy | None = None
    duration_ms: int = 0
    detail: str = ""              # tool output tail, for diagnostics

    @property
    def is_failure(self) -> bool:
        return self.kind == OutcomeKind.FAILED

    @property
    def is_warning(self) -> bool:
        return self.kind == OutcomeKind.WARNED

    @classmethod
    def success(cls, step: str, message: str = "", **kwargs) -> Outcome:
        return cls(step=step, kind=OutcomeKind.SUCCESS, message=message, **kwargs)

    @classmethod
    def skipped(cls, step: str, reason: str, **kwargs) -> Outcome:
        return cls(step=step, kind=OutcomeKind.SKIPPED, message=reason, **kwargs)

    @classmethod
    def warned(cls, step: str, message: str, **kwargs) -> Outcome:
        return cls(step=step, kind=OutcomeKind.WARNED, message=message, **kwargs)

    @classmethod
    def failed(cls, step: str, message: str, **kwargs) -> Outcome:
        return cls(step=step, kind=OutcomeKind.FAILED, message=message, **kwargs)
