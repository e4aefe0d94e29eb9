"""
Step model — one unit of the installation pipeline.

A step pairs a capability (what "already done" looks like) with an
action builder (how to get there) and a failure policy (what a failure
means for the rest of the run). Steps are immutable and identified by
name. Ordering is owned by the plan, not the step.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from bootstrapper.core.models.action import Action, Receipt
    from bootstrapper.core.models.context import RunContext


class FailurePolicy(str, Enum):
    """What a failing step means for the run."""

    FATAL = "fatal"   # stop the run, non-zero exit
    WARN = "warn"     # record a warning, continue


class CapabilityKind(str, Enum):
    """How a capability is checked."""

    TOOL = "tool"              # executable on PATH or at a fallback location
    DIRECTORY = "directory"    # directory exists (details carry a listing)
    FILE = "file"              # regular file exists
    COMMAND = "command"        # read-only query command exits 0
    CONTEXT = "context"        # RunContext attribute is set
    SERVICE = "service"        # HTTP endpoint answers 2xx


class Capability(BaseModel):
    """A checkable precondition or postcondition.

    ``target`` is interpreted per kind: an executable name, a path
    template, a RunContext attribute, or a URL. Templates use
    ``str.format`` fields resolved from the run context
    (``{install_path}``, ``{runtime}``, ``{home}``, ...).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    kind: CapabilityKind
    target: str = ""
    fallback_paths: tuple[str, ...] = ()
    argv: tuple[str, ...] = ()      # COMMAND kind only
    version: str = ""               # TOOL kind: required version prefix, a template
    description: str = ""


class ProbeResult(BaseModel):
    """Answer to "is this capability already satisfied?"."""

    satisfied: bool
    details: dict[str, Any] = Field(default_factory=dict)

    @property
    def path(self) -> str | None:
        """Resolved location (tool/file/directory kinds), if any."""
        return self.details.get("path")


def _always(_ctx: RunContext) -> bool:
    return True


ActionBuilder = Callable[["RunContext", ProbeResult], "Action"]
SatisfiedHook = Callable[["RunContext", ProbeResult, "Receipt | None"], None]


@dataclass(frozen=True)
class Step:
    """An installation step.

    ``build_action`` may raise ``StepPreconditionError`` when the step
    cannot even be attempted; the executor classifies that by policy.
    ``on_satisfied`` runs after success and after an
    already-satisfied skip, and is the only place a step writes
    forward-looking fields into the RunContext.
    """

    name: str
    build_action: ActionBuilder
    policy: FailurePolicy = FailurePolicy.FATAL
    capability: Capability | None = None
    applies: Callable[[RunContext], bool] = _always
    on_satisfied: SatisfiedHook | None = None
    requires: tuple[str, ...] = ()
    verify: bool = False              # re-probe after the action
    skip_when_satisfied: bool = True
    description: str = ""

    @property
    def is_fatal(self) -> bool:
        return self.policy == FailurePolicy.FATAL
