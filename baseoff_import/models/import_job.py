from __future__ import annotations

import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from ..errors import ImportPipelineError
from .error_record import JOB_FAILED, ROW_ERROR_TYPES, ErrorRecord

"""ImportJob domain model and JobStatus state machine.

State transitions: uploaded -> processing -> (completed | failed | paused)
and paused -> processing on resume. completed and failed are terminal.
A job that never started, or sits paused, may still be cancelled into failed.
"""

__all__ = [
    "JobStatus",
    "JobStateError",
    "ImportJob",
    "DEFAULT_ERROR_LOG_LIMIT",
]

DEFAULT_ERROR_LOG_LIMIT = 100


class JobStatus(Enum):
    UPLOADED = "uploaded"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    PAUSED = "paused"


_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.UPLOADED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.PAUSED}),
    JobStatus.PAUSED: frozenset({JobStatus.PROCESSING, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class JobStateError(ImportPipelineError):
    """Raised on an illegal job status transition."""


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class ImportJob:
    """Tracked lifecycle of one file import.

    Only the persistence stage mutates counters; earlier stages never touch
    the job. ``error_log`` keeps the most recent entries only (FIFO eviction).
    """
    file_name: str
    file_size_bytes: int = 0
    storage_path: str | None = None
    user_id: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.UPLOADED
    total_rows: int = 0
    processed_rows: int = 0
    success_count: int = 0
    error_count: int = 0
    duplicate_count: int = 0
    contracts_detected: int = 0
    contracts_inserted: int = 0
    contract_duplicates: int = 0
    last_processed_offset: int = 0
    created_at: datetime = field(default_factory=_now)
    started_at: datetime | None = None
    ended_at: datetime | None = None
    error_log_limit: int = DEFAULT_ERROR_LOG_LIMIT
    error_log: deque[ErrorRecord] = field(init=False)

    def __post_init__(self) -> None:
        self.error_log = deque(maxlen=self.error_log_limit)

    @property
    def is_terminal(self) -> bool:
        return not _TRANSITIONS[self.status]

    def _transition(self, target: JobStatus) -> None:
        if target not in _TRANSITIONS[self.status]:
            raise JobStateError(
                f"job {self.id}: illegal transition {self.status.value} -> {target.value}"
            )
        self.status = target

    def start(self) -> None:
        """Enter processing (first start or resume of a paused job)."""
        self._transition(JobStatus.PROCESSING)
        if self.started_at is None:
            self.started_at = _now()

    def complete(self) -> None:
        self._transition(JobStatus.COMPLETED)
        self.ended_at = _now()

    def fail(self, message: str) -> None:
        self._transition(JobStatus.FAILED)
        self.ended_at = _now()
        self.record_error(ErrorRecord.create(self.file_name, -1, JOB_FAILED, message))

    def pause(self, offset: int) -> None:
        """Stop processing; ``offset`` data rows are done and skipped on resume."""
        self._transition(JobStatus.PAUSED)
        self.last_processed_offset = offset

    def record_error(self, record: ErrorRecord) -> None:
        self.error_log.append(record)

    def discard_row_errors(self, from_row: int) -> int:
        """Drop row rejections at file line ``from_row`` or later; returns how many."""
        kept = [r for r in self.error_log if r.error_type not in ROW_ERROR_TYPES or r.row < from_row]
        dropped = len(self.error_log) - len(kept)
        self.error_log = deque(kept, maxlen=self.error_log_limit)
        return dropped

    def recent_errors(self) -> list[dict[str, Any]]:
        return [r.to_job_entry() for r in self.error_log]
