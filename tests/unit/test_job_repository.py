from __future__ import annotations

import json
from unittest.mock import MagicMock

from baseoff_import.db.jobs import (
    JOB_COLUMNS,
    PROGRESS_COLUMNS,
    InMemoryJobRepository,
    JobRepository,
    job_to_row,
    row_to_job,
)
from baseoff_import.models.error_record import MISSING_CPF, ErrorRecord
from baseoff_import.models.import_job import ImportJob, JobStatus


def _job() -> ImportJob:
    job = ImportJob(file_name="base.csv", file_size_bytes=10, storage_path="u/1_base.csv", user_id="u")
    job.start()
    job.total_rows = 5
    job.processed_rows = 3
    job.record_error(ErrorRecord.create("base.csv", 4, MISSING_CPF, "missing or invalid CPF"))
    return job


def test_row_round_trip_keeps_counters_and_errors():
    job = _job()
    restored = row_to_job(job_to_row(job))
    assert restored.id == job.id
    assert restored.status is JobStatus.PROCESSING
    assert restored.storage_path == "u/1_base.csv"
    assert restored.processed_rows == 3
    assert restored.recent_errors() == job.recent_errors()


def test_row_to_job_accepts_json_error_log():
    row = job_to_row(_job())
    row["error_log"] = json.dumps(row["error_log"])
    assert len(row_to_job(row).error_log) == 1


def test_in_memory_repository_partial_update():
    repo = InMemoryJobRepository()
    job = _job()
    repo.create(job)
    job.processed_rows = 5
    job.success_count = 4
    repo.update(job, PROGRESS_COLUMNS)
    stored = repo.get(job.id)
    assert stored.processed_rows == 5
    assert stored.success_count == 0  # 進捗更新では書かない
    repo.update(job)
    assert repo.get(job.id).success_count == 4
    assert repo.get("missing") is None


def test_postgres_repository_update_builds_dynamic_sql():
    conn = MagicMock()
    cursor = conn.cursor.return_value
    cursor.description = None
    repo = JobRepository(conn, "import_jobs")
    job = _job()
    repo.update(job, ["processed_rows", "error_log", "file_name"])
    sql, params = cursor.execute.call_args[0]
    assert sql == 'UPDATE import_jobs SET "processed_rows" = %s, "error_log" = CAST(%s AS jsonb) WHERE id = %s'
    assert params[0] == 3
    assert json.loads(params[1])[0]["row"] == 4
    assert params[2] == job.id
    conn.commit.assert_called_once()


def test_postgres_repository_create_and_get():
    conn = MagicMock()
    cursor = conn.cursor.return_value
    job = _job()
    repo = JobRepository(conn)

    cursor.description = None
    repo.create(job)
    sql, params = cursor.execute.call_args[0]
    assert sql.startswith("INSERT INTO import_jobs (")
    assert len(params) == len(JOB_COLUMNS)

    row = job_to_row(job)
    row["error_log"] = json.dumps(row["error_log"])
    cursor.description = [("id",)]
    cursor.fetchone.return_value = tuple(row[c] for c in JOB_COLUMNS)
    fetched = repo.get(job.id)
    assert fetched is not None
    assert fetched.file_name == "base.csv"
    assert fetched.status is JobStatus.PROCESSING


def test_postgres_repository_rolls_back_on_error():
    conn = MagicMock()
    conn.cursor.return_value.execute.side_effect = RuntimeError("boom")
    repo = JobRepository(conn)
    try:
        repo.update(_job())
    except RuntimeError:
        pass
    conn.rollback.assert_called_once()


def test_progress_update_writes_error_and_duplicate_counts():
    repo = InMemoryJobRepository()
    job = _job()
    repo.create(job)
    job.error_count = 7
    job.duplicate_count = 2
    repo.update(job, PROGRESS_COLUMNS)
    stored = repo.get(job.id)
    assert (stored.error_count, stored.duplicate_count) == (7, 2)
    assert repo.update_calls[-1] == (job.id, PROGRESS_COLUMNS)
