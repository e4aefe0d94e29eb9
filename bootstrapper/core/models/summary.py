"""
Run summary — the final, serializable result of a run.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from bootstrapper.core.models.context import WarningRecord
from bootstrapper.core.models.device import DeviceReport
from bootstrapper.core.models.outcome import Outcome


class RunSummary(BaseModel):
    run_id: str
    status: str = "ok"                 # ok, warnings, failed
    exit_code: int = 0
    platform: str = ""
    install_path: str = ""
    failure: str | None = None
    warnings: list[WarningRecord] = Field(default_factory=list)
    outcomes: list[Outcome] = Field(default_factory=list)
    audio: DeviceReport | None = None
    next_steps: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"audio"})
        data["audio"] = self.audio.to_dict() if self.audio else None
        return data
