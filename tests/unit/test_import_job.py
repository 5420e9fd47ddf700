from __future__ import annotations

import pytest

from baseoff_import.errors import ImportPipelineError
from baseoff_import.models.error_record import CLIENT_BATCH_ERROR, JOB_FAILED, MISSING_CPF, MISSING_NOME, ErrorRecord
from baseoff_import.models.import_job import ImportJob, JobStateError, JobStatus


def test_new_job_is_uploaded():
    job = ImportJob(file_name="a.csv")
    assert job.status is JobStatus.UPLOADED
    assert job.started_at is None and job.ended_at is None
    assert not job.is_terminal


def test_happy_path_sets_timestamps():
    job = ImportJob(file_name="a.csv")
    job.start()
    assert job.status is JobStatus.PROCESSING
    assert job.started_at is not None
    job.complete()
    assert job.status is JobStatus.COMPLETED
    assert job.ended_at is not None
    assert job.is_terminal


def test_pause_and_resume_keeps_first_start():
    job = ImportJob(file_name="a.csv")
    job.start()
    started = job.started_at
    job.pause(42)
    assert job.status is JobStatus.PAUSED
    assert job.last_processed_offset == 42
    job.start()
    assert job.status is JobStatus.PROCESSING
    assert job.started_at == started


def test_fail_records_exception_text():
    job = ImportJob(file_name="a.csv")
    job.start()
    job.fail("disk on fire")
    assert job.status is JobStatus.FAILED
    entry = job.recent_errors()[-1]
    assert entry["error"] == "disk on fire"
    assert entry["error_type"] == JOB_FAILED
    assert entry["row"] == -1


@pytest.mark.parametrize(
    "prepare,action",
    [
        (lambda j: None, lambda j: j.complete()),
        (lambda j: None, lambda j: j.pause(0)),
        (lambda j: (j.start(), j.complete()), lambda j: j.start()),
        (lambda j: (j.start(), j.fail("x")), lambda j: j.start()),
        (lambda j: (j.start(), j.pause(1)), lambda j: j.complete()),
        (lambda j: j.start(), lambda j: j.start()),
    ],
)
def test_illegal_transitions_raise(prepare, action):
    job = ImportJob(file_name="a.csv")
    prepare(job)
    with pytest.raises(JobStateError):
        action(job)


def test_job_state_error_is_pipeline_error():
    assert issubclass(JobStateError, ImportPipelineError)


def test_error_log_is_bounded_fifo():
    job = ImportJob(file_name="a.csv", error_log_limit=3)
    for row in range(2, 8):
        job.record_error(ErrorRecord.create("a.csv", row, MISSING_NOME, f"row {row}"))
    assert [e["row"] for e in job.recent_errors()] == [5, 6, 7]


def test_default_error_log_limit_is_100():
    job = ImportJob(file_name="a.csv")
    for row in range(250):
        job.record_error(ErrorRecord.create("a.csv", row, MISSING_NOME, "x"))
    errors = job.recent_errors()
    assert len(errors) == 100
    assert errors[0]["row"] == 150


def test_discard_row_errors_keeps_earlier_rows_and_batch_entries():
    job = ImportJob(file_name="a.csv", error_log_limit=5)
    job.record_error(ErrorRecord.create("a.csv", 3, MISSING_NOME, "x"))
    job.record_error(ErrorRecord.create("a.csv", 4, CLIENT_BATCH_ERROR, "batch"))
    job.record_error(ErrorRecord.create("a.csv", 4, MISSING_CPF, "y"))
    job.record_error(ErrorRecord.create("a.csv", 7, MISSING_NOME, "z"))
    job.record_error(ErrorRecord.create("a.csv", -1, JOB_FAILED, "boom"))

    assert job.discard_row_errors(4) == 2
    assert [(e["row"], e["error_type"]) for e in job.recent_errors()] == [
        (3, MISSING_NOME),
        (4, CLIENT_BATCH_ERROR),
        (-1, JOB_FAILED),
    ]
    assert job.error_log.maxlen == 5
