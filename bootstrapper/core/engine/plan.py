"""
Installation plan — the ordered, validated list of steps for a platform.

A plan is built once per run and never reordered. Validation rejects
duplicate step names and any ``requires`` edge that does not point at
an earlier FATAL step, since only FATAL steps are guaranteed to have
succeeded by the time a later step runs.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from bootstrapper.core.models.context import RunContext
from bootstrapper.core.models.step import FailurePolicy, Step


class PlanError(Exception):
    """The plan definition is inconsistent."""


class InstallationPlan:
    def __init__(
        self,
        platform: str,
        steps: Iterable[Step],
        next_steps: Callable[[RunContext], list[str]] | None = None,
    ):
        self.platform = platform
        self._steps: tuple[Step, ...] = tuple(steps)
        self._next_steps = next_steps
        self._validate()

    def __iter__(self) -> Iterator[Step]:
        return iter(self._steps)

    def __len__(self) -> int:
        return len(self._steps)

    @property
    def steps(self) -> tuple[Step, ...]:
        return self._steps

    def names(self) -> list[str]:
        return [s.name for s in self._steps]

    def get(self, name: str) -> Step | None:
        for step in self._steps:
            if step.name == name:
                return step
        return None

    def next_steps(self, ctx: RunContext) -> list[str]:
        return self._next_steps(ctx) if self._next_steps else []

    def describe(self, ctx: RunContext | None = None) -> list[dict[str, Any]]:
        """Table of steps; with a context, includes whether each applies."""
        rows = []
        for index, step in enumerate(self._steps, start=1):
            row: dict[str, Any] = {
                "index": index,
                "name": step.name,
                "policy": step.policy.value,
                "capability": step.capability.id if step.capability else None,
                "description": step.description,
            }
            if ctx is not None:
                row["applies"] = step.applies(ctx)
            rows.append(row)
        return rows

    def _validate(self) -> None:
        seen: dict[str, int] = {}
        for index, step in enumerate(self._steps):
            if step.name in seen:
                raise PlanError(f"Duplicate step name: {step.name}")
            seen[step.name] = index

        for index, step in enumerate(self._steps):
            for dep in step.requires:
                if dep not in seen:
                    raise PlanError(f"Step '{step.name}' requires unknown step '{dep}'")
                if seen[dep] >= index:
                    raise PlanError(f"Step '{step.name}' requires '{dep}', which runs later")
                if self._steps[seen[dep]].policy != FailurePolicy.FATAL:
                    raise PlanError(
                        f"Step '{step.name}' requires '{dep}', which is not FATAL "
                        "and may have been skipped over"
                    )
