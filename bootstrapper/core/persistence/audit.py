"""
Audit ledger — append-only run history.

Every run writes one entry to an NDJSON (newline-delimited JSON) file
under the installer's state directory. Entries carry outcomes and
counts, never the credential.

The ledger is append-only: entries are never modified or deleted.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path

from pydantic import BaseModel, Field

from bootstrapper.core.models.outcome import OutcomeKind
from bootstrapper.core.models.summary import RunSummary

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "audit.ndjson"


class AuditEntry(BaseModel):
    """A single audit log entry."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    operation_type: str = ""       # install, audio
    platform: str = ""
    install_path: str = ""

    # Results
    status: str = ""               # ok, warnings, failed
    exit_code: int = 0
    steps_total: int = 0
    steps_succeeded: int = 0
    steps_skipped: int = 0
    steps_warned: int = 0
    steps_failed: int = 0
    duration_ms: int = 0

    failure: str | None = None
    warnings: list[str] = Field(default_factory=list)
    audio_usable: int | None = None

    @classmethod
    def from_summary(cls, summary: RunSummary, operation_type: str) -> AuditEntry:
        def count(kind: OutcomeKind) -> int:
            return sum(1 for o in summary.outcomes if o.kind == kind)

        return cls(
            run_id=summary.run_id,
            operation_type=operation_type,
            platform=summary.platform,
            install_path=summary.install_path,
            status=summary.status,
            exit_code=summary.exit_code,
            steps_total=len(summary.outcomes),
            steps_succeeded=count(OutcomeKind.SUCCESS),
            steps_skipped=count(OutcomeKind.SKIPPED),
            steps_warned=count(OutcomeKind.WARNED),
            steps_failed=count(OutcomeKind.FAILED),
            duration_ms=summary.duration_ms,
            failure=summary.failure,
            warnings=[str(w) for w in summary.warnings],
            audio_usable=summary.audio.usable_count if summary.audio else None,
        )


class AuditWriter:
    """Append-only audit ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist. Write failures are logged,
    never raised: the ledger must not change a run's outcome.
    """

    def __init__(self, state_dir: Path):
        self._path = state_dir / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        data = entry.model_dump(mode="json")
        line = json.dumps(data, ensure_ascii=False) + "\n"

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug("Audit entry written: %s/%s", entry.operation_type, entry.run_id)
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except ValueError as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries
