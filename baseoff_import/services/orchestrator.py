from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..config.loader import ImportConfig
from ..db.jobs import PROGRESS_COLUMNS
from ..errors import EmptyFileError, ImportPipelineError
from ..ingest.reader import read_tabular_file, validate_upload
from ..logging.error_log import ErrorLogBuffer
from ..mapping.header_map import HeaderMap, build_header_map
from ..models.cell import RawRow
from ..models.error_record import ErrorRecord
from ..models.import_job import ImportJob, JobStateError, JobStatus
from ..models.processing_result import (
    BatchStatsAccumulator,
    ImportResult,
    ProgressSnapshot,
    snapshot_of,
)
from ..normalize.validator import normalize_row, row_keys
from ..storage.local import LocalObjectStorage, StorageError
from .buffer import ImportBuffer
from .persister import BufferedPersister

"""Import orchestration: submit -> run (-> pause -> resume) of one file.

Stages run strictly forward: read file -> header map -> row normalization
into the buffer -> buffered persistence. Row and batch problems become
counters and error entries; only structural problems fail the job. The job
row is updated every ``progress_interval_rows`` rows and after each batch.

A pause leaves the job exactly as the rows before its offset left it: a
pause between batches rewinds the row counters and row errors to the first
unsaved client. Resume marks the keys of those earlier rows as seen, so a
paused and resumed import ends like an uninterrupted one.
"""

__all__ = [
    "ImportServices",
    "submit_import",
    "run_import",
    "resume_import",
    "import_file",
]

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressSnapshot], None]
StopCheck = Callable[[], bool]


@dataclass
class ImportServices:
    """Collaborators of one import run.

    ``store`` / ``jobs`` are PostgreSQL or in-memory implementations with the
    same interface. Without ``storage`` the job's storage path is a local file
    path and nothing is cleaned up.
    """
    store: Any
    jobs: Any
    storage: LocalObjectStorage | None = None
    config: ImportConfig = field(default_factory=ImportConfig)
    error_log: ErrorLogBuffer | None = None
    sleep: Callable[[float], None] = time.sleep


def submit_import(path: Path, services: ImportServices, user_id: str | None = None) -> ImportJob:
    """Validate and store the upload; create the job row in ``uploaded``."""
    cfg = services.config
    size = validate_upload(path, cfg.max_file_size_mb, cfg.allowed_extensions)
    if services.storage is not None:
        storage_path = services.storage.upload(path, owner=user_id)
    else:
        storage_path = str(path.resolve())
    job = ImportJob(
        file_name=path.name,
        file_size_bytes=size,
        storage_path=storage_path,
        user_id=user_id,
        error_log_limit=cfg.error_log_limit,
    )
    services.jobs.create(job)
    logger.info("job submitted id=%s file=%s size=%d", job.id, job.file_name, size)
    return job


def _source_path(job: ImportJob, services: ImportServices) -> Path:
    if job.storage_path is None:
        raise StorageError(f"job {job.id} has no stored file")
    if services.storage is not None:
        return services.storage.path(job.storage_path)
    return Path(job.storage_path)


def _read_source(path: Path) -> tuple[HeaderMap, list[RawRow]]:
    rows = read_tabular_file(path)
    header_map = build_header_map(rows[0])
    data_rows = rows[1:]
    if not data_rows:
        raise EmptyFileError(f"{path.name}: header row only, no data rows")
    return header_map, data_rows


@dataclass(frozen=True)
class _RowCounters:
    error_count: int
    duplicate_count: int
    contracts_detected: int
    contract_duplicates: int

    @staticmethod
    def of(job: ImportJob) -> _RowCounters:
        return _RowCounters(
            job.error_count, job.duplicate_count, job.contracts_detected, job.contract_duplicates
        )


class _Run:
    """State of one run_import call."""

    def __init__(
        self,
        job: ImportJob,
        services: ImportServices,
        batch_size: int,
        imported_by: str | None,
        progress_callback: ProgressCallback | None,
        should_stop: StopCheck | None,
    ) -> None:
        self.job = job
        self.services = services
        self.imported_by = imported_by
        self.progress_callback = progress_callback
        self.should_stop = should_stop
        self.stats = BatchStatsAccumulator()
        self.persister = BufferedPersister(
            services.store,
            batch_size,
            pause_seconds=services.config.pause_seconds,
            stats=self.stats,
            sleep=services.sleep,
        )

    def emit(self, phase: str) -> None:
        if self.progress_callback is not None:
            self.progress_callback(snapshot_of(self.job, phase))

    def stop_requested(self) -> bool:
        return self.should_stop is not None and self.should_stop()

    def record_row_error(self, row_number: int, error_type: str, reason: str) -> None:
        record = ErrorRecord.create(self.job.file_name, row_number, error_type, reason)
        self.job.error_count += 1
        self.job.record_error(record)
        if self.services.error_log is not None:
            self.services.error_log.append(record)

    def on_batch(self, job: ImportJob) -> None:
        self.services.jobs.update(job)
        self.emit("saving")

    def seed(self, buffer: ImportBuffer, header_map: HeaderMap, rows: list[RawRow]) -> None:
        """Rebuild the seen keys of rows handled before the resume offset (not counted)."""
        cpfs: set[str] = set()
        contract_keys: set[tuple[str, str]] = set()
        for row in rows:
            keys = row_keys(row, header_map)
            if keys is None:
                continue
            cpf, contract_key = keys
            cpfs.add(cpf)
            if contract_key is not None:
                contract_keys.add(contract_key)
        buffer.seed(cpfs, contract_keys)
        logger.info(
            "resume: %d earlier rows seeded clients=%d contracts=%d",
            len(rows), len(cpfs), len(contract_keys),
        )

    def rewind(self, offset: int, checkpoint: _RowCounters, batch_errors: int, late_contracts: int) -> None:
        """Reset the job to what rows ``[0, offset)`` produced; the rest is redone on resume."""
        job = self.job
        job.processed_rows = offset
        job.error_count = checkpoint.error_count + batch_errors
        job.duplicate_count = checkpoint.duplicate_count
        job.contracts_detected = checkpoint.contracts_detected
        job.contract_duplicates = checkpoint.contract_duplicates
        job.contracts_inserted -= late_contracts
        dropped = job.discard_row_errors(offset + 2)
        if self.services.error_log is not None:
            self.services.error_log.discard_rows(job.file_name, offset + 2)
        logger.debug(
            "rewound to row index %d: dropped %d row errors, %d early contracts",
            offset, dropped, late_contracts,
        )

    def process(self, header_map: HeaderMap, data_rows: list[RawRow], start: int) -> None:
        job = self.job
        interval = self.services.config.progress_interval_rows
        batch_size = self.persister.batch_size
        buffer = ImportBuffer()
        if start:
            self.seed(buffer, header_map, data_rows[:start])
        # クライアントバッチ先頭行 -> その行を処理する直前のカウンタ
        checkpoints: dict[int, _RowCounters] = {}

        for index in range(start, len(data_rows)):
            if self.stop_requested():
                # 行ループ中の停止: バッファ分を保存してから paused
                logger.info("pause requested at row index %d; saving %d buffered clients", index, len(buffer))
                self.persister.persist(buffer, job, self.services.error_log, self.on_batch)
                job.pause(index)
                return

            outcome = normalize_row(data_rows[index], header_map, index, self.imported_by, job.id)
            job.processed_rows += 1
            if not outcome.ok:
                self.record_row_error(outcome.row_number, outcome.error_type or "", outcome.reason or "")
            else:
                before = _RowCounters.of(job)
                added = buffer.add(outcome.client, outcome.contract)
                if added.client_added:
                    if (len(buffer) - 1) % batch_size == 0:
                        checkpoints[index] = before
                else:
                    job.duplicate_count += 1
                if added.contract_added:
                    job.contracts_detected += 1
                if added.contract_duplicate:
                    job.contract_duplicates += 1

            if job.processed_rows % interval == 0:
                self.services.jobs.update(job, PROGRESS_COLUMNS)
                self.emit("processing")

        self.emit("processing")
        logger.info(
            "rows processed=%d buffered_clients=%d buffered_contracts=%d errors=%d duplicates=%d",
            job.processed_rows, len(buffer), buffer.contract_count, job.error_count, job.duplicate_count,
        )

        row_errors = job.error_count
        outcome = self.persister.persist(
            buffer, job, self.services.error_log, self.on_batch, self.stop_requested
        )
        if outcome.stopped and outcome.resume_offset is not None:
            offset = outcome.resume_offset
            self.rewind(offset, checkpoints[offset], job.error_count - row_errors, outcome.late_contracts)
            job.pause(offset)
            return
        if outcome.failed_batches:
            logger.warning("%d of %d client batches failed", outcome.failed_batches, outcome.batches)
        job.complete()


def _cleanup_source(job: ImportJob, services: ImportServices) -> None:
    if services.storage is None or not services.config.delete_source_on_success:
        return
    if job.storage_path is None:
        return
    try:
        services.storage.delete(job.storage_path)
    except StorageError as e:
        logger.warning("stored file cleanup failed job=%s: %s", job.id, e)


def _build_result(job: ImportJob, run: _Run, start_time: datetime, started: float) -> ImportResult:
    end_time = datetime.now(UTC)
    elapsed = time.perf_counter() - started
    total_batches, avg_batch, p95_batch = run.stats.get_stats()
    return ImportResult(
        job_id=job.id,
        file_name=job.file_name,
        status=job.status.value,
        total_rows=job.total_rows,
        processed_rows=job.processed_rows,
        success_count=job.success_count,
        error_count=job.error_count,
        duplicate_count=job.duplicate_count,
        contracts_detected=job.contracts_detected,
        contracts_inserted=job.contracts_inserted,
        contract_duplicates=job.contract_duplicates,
        start_time=start_time,
        end_time=end_time,
        elapsed_seconds=elapsed,
        throughput_rows_per_sec=(job.processed_rows / elapsed) if elapsed > 0 else 0.0,
        total_batches=total_batches,
        avg_batch_seconds=avg_batch,
        p95_batch_seconds=p95_batch,
        recent_errors=tuple(job.recent_errors()),
    )


def run_import(
    job: ImportJob,
    services: ImportServices,
    *,
    imported_by: str | None = None,
    batch_size: int | None = None,
    progress_callback: ProgressCallback | None = None,
    should_stop: StopCheck | None = None,
) -> ImportResult:
    """Process an ``uploaded`` (or ``paused``) job to completion, pause or failure.

    Fatal problems do not raise: the job ends ``failed`` with the exception
    text as one error entry and the result reports it. Only an illegal state
    (e.g. running a completed job) raises JobStateError.
    """
    resume_from = job.last_processed_offset if job.status is JobStatus.PAUSED else 0
    job.start()
    services.jobs.update(job)

    run = _Run(
        job,
        services,
        batch_size or services.config.batch_size,
        imported_by if imported_by is not None else job.user_id,
        progress_callback,
        should_stop,
    )
    start_time = datetime.now(UTC)
    started = time.perf_counter()
    mode = f"resumed at row {resume_from}" if resume_from else "started"
    logger.info("job %s %s file=%s batch_size=%d", job.id, mode, job.file_name, run.persister.batch_size)
    run.emit("reading")

    try:
        header_map, data_rows = _read_source(_source_path(job, services))
        job.total_rows = len(data_rows)
        logger.debug("header map fields=%s", sorted(header_map.fields))
        run.process(header_map, data_rows, resume_from)
    except (ImportPipelineError, StorageError) as e:
        logger.error("import failed job=%s: %s", job.id, e)
        job.fail(str(e))
    except Exception as e:
        logger.error("import failed job=%s: %s: %s", job.id, type(e).__name__, e, exc_info=True)
        job.fail(f"{type(e).__name__}: {e}")

    if job.status is JobStatus.FAILED and services.error_log is not None:
        services.error_log.append(job.error_log[-1])

    services.jobs.update(job)
    if job.status is JobStatus.COMPLETED:
        _cleanup_source(job, services)
    if services.error_log is not None:
        path = services.error_log.flush()
        if path is not None and services.error_log.total_written:
            logger.info("error log: %s", path)

    run.emit("done")
    return _build_result(job, run, start_time, started)


def resume_import(job_id: str, services: ImportServices, **kwargs: Any) -> ImportResult:
    """Continue a paused job from its recorded row offset.

    The stored file must be the same bytes as the uploaded one; nothing checks it.
    """
    job = services.jobs.get(job_id, services.config.error_log_limit)
    if job is None:
        raise JobStateError(f"job not found: {job_id}")
    if job.status is not JobStatus.PAUSED:
        raise JobStateError(f"job {job_id} is {job.status.value}, only paused jobs can be resumed")
    return run_import(job, services, **kwargs)


def import_file(
    path: Path,
    services: ImportServices,
    *,
    user_id: str | None = None,
    **kwargs: Any,
) -> ImportResult:
    """submit_import + run_import in one call."""
    job = submit_import(path, services, user_id=user_id)
    return run_import(job, services, **kwargs)
