from __future__ import annotations

import json
import logging
import threading
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from ..models.error_record import ErrorRecord
from ..models.import_job import ImportJob, JobStatus

"""Persistent tracking of import jobs (``import_jobs`` table).

The job row is what an external observer polls: status, counters, the resume
offset and the capped recent error log (JSON). Both repositories serialise
through the same row mapping so mock mode behaves like PostgreSQL.
"""

__all__ = [
    "JOB_COLUMNS",
    "PROGRESS_COLUMNS",
    "job_to_row",
    "row_to_job",
    "JobRepository",
    "InMemoryJobRepository",
]

logger = logging.getLogger(__name__)

JOB_COLUMNS = (
    "id",
    "user_id",
    "file_name",
    "file_path",
    "file_size",
    "status",
    "total_rows",
    "processed_rows",
    "success_count",
    "error_count",
    "duplicate_count",
    "contracts_detected",
    "contracts_inserted",
    "contract_duplicates",
    "last_processed_offset",
    "error_log",
    "created_at",
    "processing_started_at",
    "processing_ended_at",
)

# 定期更新 (progress_interval_rows 毎) で書く列
PROGRESS_COLUMNS = (
    "total_rows",
    "processed_rows",
    "error_count",
    "duplicate_count",
    "contracts_detected",
    "contract_duplicates",
    "last_processed_offset",
    "error_log",
)

_IMMUTABLE_COLUMNS = frozenset({"id", "user_id", "file_name", "file_path", "file_size", "created_at"})


def job_to_row(job: ImportJob) -> dict[str, Any]:
    return {
        "id": job.id,
        "user_id": job.user_id,
        "file_name": job.file_name,
        "file_path": job.storage_path,
        "file_size": job.file_size_bytes,
        "status": job.status.value,
        "total_rows": job.total_rows,
        "processed_rows": job.processed_rows,
        "success_count": job.success_count,
        "error_count": job.error_count,
        "duplicate_count": job.duplicate_count,
        "contracts_detected": job.contracts_detected,
        "contracts_inserted": job.contracts_inserted,
        "contract_duplicates": job.contract_duplicates,
        "last_processed_offset": job.last_processed_offset,
        "error_log": job.recent_errors(),
        "created_at": job.created_at,
        "processing_started_at": job.started_at,
        "processing_ended_at": job.ended_at,
    }


def row_to_job(row: dict[str, Any], error_log_limit: int | None = None) -> ImportJob:
    error_log = row.get("error_log") or []
    if isinstance(error_log, str):
        error_log = json.loads(error_log)
    kwargs: dict[str, Any] = {}
    if error_log_limit is not None:
        kwargs["error_log_limit"] = error_log_limit
    job = ImportJob(
        file_name=row["file_name"],
        file_size_bytes=row.get("file_size") or 0,
        storage_path=row.get("file_path"),
        user_id=row.get("user_id"),
        id=str(row["id"]),
        status=JobStatus(row["status"]),
        total_rows=row.get("total_rows") or 0,
        processed_rows=row.get("processed_rows") or 0,
        success_count=row.get("success_count") or 0,
        error_count=row.get("error_count") or 0,
        duplicate_count=row.get("duplicate_count") or 0,
        contracts_detected=row.get("contracts_detected") or 0,
        contracts_inserted=row.get("contracts_inserted") or 0,
        contract_duplicates=row.get("contract_duplicates") or 0,
        last_processed_offset=row.get("last_processed_offset") or 0,
        created_at=row.get("created_at") or datetime.min,
        started_at=row.get("processing_started_at"),
        ended_at=row.get("processing_ended_at"),
        **kwargs,
    )
    for entry in error_log:
        job.record_error(ErrorRecord.from_job_entry(job.file_name, entry))
    return job


def _mutable_columns(columns: Sequence[str] | None) -> list[str]:
    selected = JOB_COLUMNS if columns is None else columns
    return [c for c in selected if c not in _IMMUTABLE_COLUMNS]


class JobRepository:
    """import_jobs on PostgreSQL (psycopg2 connection, commit per call)."""

    def __init__(self, connection: Any, table: str = "import_jobs") -> None:
        self._conn = connection
        self.table = table

    def _execute(self, sql: str, params: Sequence[Any]) -> Any:
        cursor = self._conn.cursor()
        try:
            cursor.execute(sql, params)
            row = cursor.fetchone() if cursor.description else None
            self._conn.commit()
            return row
        except Exception:
            self._conn.rollback()
            raise
        finally:
            cursor.close()

    @staticmethod
    def _param(column: str, value: Any) -> Any:
        return json.dumps(value, ensure_ascii=False) if column == "error_log" else value

    @staticmethod
    def _placeholder(column: str) -> str:
        return "CAST(%s AS jsonb)" if column == "error_log" else "%s"

    def create(self, job: ImportJob) -> ImportJob:
        row = job_to_row(job)
        cols_sql = ",".join(f'"{c}"' for c in JOB_COLUMNS)
        values_sql = ",".join(self._placeholder(c) for c in JOB_COLUMNS)
        self._execute(
            f"INSERT INTO {self.table} ({cols_sql}) VALUES ({values_sql})",
            [self._param(c, row[c]) for c in JOB_COLUMNS],
        )
        logger.debug("job created id=%s file=%s", job.id, job.file_name)
        return job

    def update(self, job: ImportJob, columns: Sequence[str] | None = None) -> None:
        """Write ``columns`` (default: every mutable column) of ``job``."""
        row = job_to_row(job)
        update_parts = []
        params: list[Any] = []
        for c in _mutable_columns(columns):
            update_parts.append(f'"{c}" = {self._placeholder(c)}')
            params.append(self._param(c, row[c]))
        if not update_parts:
            return
        params.append(job.id)
        self._execute(
            f"UPDATE {self.table} SET {', '.join(update_parts)} WHERE id = %s",
            params,
        )

    def get(self, job_id: str, error_log_limit: int | None = None) -> ImportJob | None:
        cols_sql = ",".join(f'"{c}"' for c in JOB_COLUMNS)
        found = self._execute(f"SELECT {cols_sql} FROM {self.table} WHERE id = %s", [job_id])
        if found is None:
            return None
        return row_to_job(dict(zip(JOB_COLUMNS, found)), error_log_limit)


class InMemoryJobRepository:
    """Dict backed job rows (mock mode and tests)."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.update_calls: list[tuple[str, tuple[str, ...]]] = []
        self._lock = threading.Lock()

    def create(self, job: ImportJob) -> ImportJob:
        with self._lock:
            self.rows[job.id] = job_to_row(job)
        return job

    def update(self, job: ImportJob, columns: Sequence[str] | None = None) -> None:
        row = job_to_row(job)
        cols = _mutable_columns(columns)
        with self._lock:
            stored = self.rows.setdefault(job.id, job_to_row(job))
            for c in cols:
                stored[c] = row[c]
            self.update_calls.append((job.id, tuple(cols)))

    def get(self, job_id: str, error_log_limit: int | None = None) -> ImportJob | None:
        with self._lock:
            row = self.rows.get(job_id)
            if row is None:
                return None
            return row_to_job(dict(row), error_log_limit)
