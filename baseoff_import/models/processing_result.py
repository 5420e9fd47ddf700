from __future__ import annotations

import statistics
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .import_job import ImportJob

"""Progress and result models for the import pipeline.

ProgressSnapshot is published after every unit of work (row interval or
batch) for display only. ImportResult is the final aggregate of one run.
"""

__all__ = [
    "ProgressSnapshot",
    "ImportResult",
    "BatchStatsAccumulator",
    "snapshot_of",
]


@dataclass(frozen=True)
class ProgressSnapshot:
    """Caller-visible progress after one unit of work."""
    processed_rows: int
    total_rows: int
    success_count: int
    error_count: int
    duplicate_count: int
    recent_errors: tuple[dict[str, Any], ...] = ()
    phase: str = "processing"  # reading / processing / saving / done

    @property
    def percent(self) -> int:
        if self.total_rows <= 0:
            return 0
        return min(100, round(self.processed_rows * 100 / self.total_rows))


def snapshot_of(job: ImportJob, phase: str) -> ProgressSnapshot:
    return ProgressSnapshot(
        processed_rows=job.processed_rows,
        total_rows=job.total_rows,
        success_count=job.success_count,
        error_count=job.error_count,
        duplicate_count=job.duplicate_count,
        recent_errors=tuple(job.recent_errors()),
        phase=phase,
    )


@dataclass(frozen=True)
class ImportResult:
    """Aggregated result of one import run (SUMMARY line source)."""
    job_id: str
    file_name: str
    status: str  # JobStatus value at the end of the run
    total_rows: int
    processed_rows: int
    success_count: int
    error_count: int
    duplicate_count: int
    contracts_detected: int
    contracts_inserted: int
    contract_duplicates: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float
    total_batches: int = 0
    avg_batch_seconds: float = 0.0
    p95_batch_seconds: float = 0.0
    recent_errors: tuple[dict[str, Any], ...] = ()


class BatchStatsAccumulator:
    """Collects individual upsert timings and summarises them."""

    def __init__(self) -> None:
        self.batch_times: list[float] = []

    def add_batch_time(self, elapsed_seconds: float) -> None:
        self.batch_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate batch statistics.

        Returns:
            tuple: (total_batches, avg_batch_seconds, p95_batch_seconds)
        """
        if not self.batch_times:
            return (0, 0.0, 0.0)

        total_batches = len(self.batch_times)
        avg_batch_seconds = statistics.mean(self.batch_times)

        if total_batches == 1:
            p95_batch_seconds = self.batch_times[0]
        else:
            p95_batch_seconds = statistics.quantiles(
                self.batch_times, n=20, method='inclusive'
            )[18]  # 19th of 20 cut points

        return (total_batches, avg_batch_seconds, p95_batch_seconds)
