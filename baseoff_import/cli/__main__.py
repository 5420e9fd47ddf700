from __future__ import annotations

import argparse
import logging
import sys
from contextlib import ExitStack
from pathlib import Path
from typing import Any

import psycopg2
from dotenv import load_dotenv

from ..config.loader import ConfigError, ImportConfig, load_config, resolve_batch_size
from ..db.connection import db_connection, db_connection_disabled
from ..db.jobs import InMemoryJobRepository, JobRepository
from ..db.store import InMemoryStore, PostgresStore
from ..errors import ImportPipelineError
from ..ingest.reader import read_tabular_file, validate_upload
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..mapping.header_map import build_header_map
from ..models.import_job import JobStatus
from ..models.processing_result import ImportResult
from ..normalize.validator import normalize_row
from ..services.orchestrator import ImportServices, submit_import
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line
from ..services.worker import ImportWorker
from ..storage.local import LocalObjectStorage, StorageError

"""CLI entrypoint.

    python -m baseoff_import.cli FILE [--config PATH] [--preset NAME]
        [--batch-size N] [--imported-by USER] [--resume JOB_ID]
        [--inspect-data] [--debug]

Exit codes: 0 completed without errors, 2 completed with row/batch errors
or paused (Ctrl+C pauses after the current row or batch), 1 fatal.
"""

EXIT_SUCCESS = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_SAMPLE_ROWS = 3
SUMMARY_ERROR_LINES = 5

logger = logging.getLogger("baseoff_import.cli")


def _load_env_file(path: Path, override: bool = True) -> None:
    """.env の値で既存環境変数を上書き (DB 接続情報を最優先)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="baseoff-import",
        description="Base Off bulk importer (CSV / XLSX / XLS -> PostgreSQL)",
    )
    p.add_argument("file", nargs="?", type=Path, help="File to import (omit with --resume)")
    p.add_argument("--config", type=Path, default=None, help="Config YAML (default: config/import.yml)")
    p.add_argument("--preset", choices=("conservative", "balanced", "aggressive"), default=None,
                   help="Batch size preset")
    p.add_argument("--batch-size", type=int, default=None, help="Explicit batch size (1..5000)")
    p.add_argument("--imported-by", default=None, help="User recorded as importer / storage owner")
    p.add_argument("--resume", metavar="JOB_ID", default=None, help="Resume a paused job")
    p.add_argument("--inspect-data", action="store_true",
                   help="Print header mapping & first normalized rows then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = p.parse_args(argv)
    if args.file is None and args.resume is None:
        p.error("FILE is required unless --resume is given")
    if args.inspect_data and args.file is None:
        p.error("--inspect-data needs FILE")
    return args


def _inspect_data(path: Path, cfg: ImportConfig) -> int:
    try:
        validate_upload(path, cfg.max_file_size_mb, cfg.allowed_extensions)
        rows = read_tabular_file(path)
        header_map = build_header_map(rows[0])
    except ImportPipelineError as e:
        print(f"inspect: {e}")
        return EXIT_FATAL

    print(f"FILE: {path.name} data_rows={len(rows) - 1}")
    for idx, field_name in sorted(header_map.items()):
        print(f"  column[{idx}] -> {field_name}")
    if header_map.unmapped:
        print(f"  unmapped={list(header_map.unmapped)}")
    print(f"  contract_columns={header_map.has_contract_columns()}")
    for index, row in enumerate(rows[1:1 + INSPECT_SAMPLE_ROWS]):
        outcome = normalize_row(row, header_map, index)
        if not outcome.ok:
            print(f"  row {outcome.row_number}: rejected {outcome.error_type} ({outcome.reason})")
            continue
        client = {k: v for k, v in outcome.client.to_dict().items() if v is not None}
        print(f"  row {outcome.row_number}: client={client}")
        if outcome.contract is not None:
            contract = {k: v for k, v in outcome.contract.to_dict().items() if v is not None}
            print(f"  row {outcome.row_number}: contract={contract}")
    return EXIT_SUCCESS


def _open_backends(cfg: ImportConfig, stack: ExitStack) -> tuple[Any, Any, str]:
    """(store, jobs, mode). Falls back to in-memory backends without a database."""
    if db_connection_disabled():
        logger.debug("DB connect disabled via DISABLE_DB_CONNECT=1 -> mock mode")
        return InMemoryStore(), InMemoryJobRepository(), "mock"
    try:
        conn = stack.enter_context(db_connection(cfg.database))
    except psycopg2.Error as e:
        logger.info("DB connection failed -> fallback to mock mode: %s", str(e).strip())
        return InMemoryStore(), InMemoryJobRepository(), "mock"
    return PostgresStore(conn, cfg.tables), JobRepository(conn, cfg.tables.jobs), "live"


def _watch(worker: ImportWorker, tracker: ProgressTracker) -> None:
    worker.start()
    while worker.is_alive():
        try:
            worker.join(0.2)
        except KeyboardInterrupt:
            logger.warning("interrupt: pausing after the current row or batch")
            worker.pause()
        for snapshot in worker.drain():
            tracker.update(snapshot)
    for snapshot in worker.drain():
        tracker.update(snapshot)


def _exit_code(result: ImportResult) -> int:
    if result.status == JobStatus.FAILED.value:
        return EXIT_FATAL
    if result.status == JobStatus.COMPLETED.value and result.error_count == 0:
        return EXIT_SUCCESS
    return EXIT_PARTIAL_FAILURE


def _report(result: ImportResult, mode: str, error_log: ErrorLogBuffer) -> None:
    logger.info("mode=%s job=%s status=%s", mode, result.job_id, result.status)
    if error_log.type_counts:
        counts = " ".join(f"{k}={v}" for k, v in sorted(error_log.type_counts.items()))
        logger.info("error types: %s (log: %s)", counts, error_log.file_path)
    if result.total_batches:
        logger.info(
            "batches=%d avg_batch_sec=%.4f p95_batch_sec=%.4f contracts_detected=%d contract_duplicates=%d",
            result.total_batches, result.avg_batch_seconds, result.p95_batch_seconds,
            result.contracts_detected, result.contract_duplicates,
        )
    for entry in result.recent_errors[-SUMMARY_ERROR_LINES:]:
        logger.warning("row=%s %s", entry["row"], entry["error"])
    if result.status == JobStatus.PAUSED.value:
        logger.info("resume with: --resume %s", result.job_id)
    log_summary(render_summary_line(result)[len("SUMMARY "):])


def main(argv: list[str] | None = None) -> int:
    # [] を渡された場合に sys.argv が混入しないよう None のときのみ読む
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    setup_logging(debug=args.debug)
    _load_env_file(Path(".env"), override=True)

    try:
        cfg = load_config(args.config)
        batch_size = cfg.batch_size
        if args.preset is not None or args.batch_size is not None:
            batch_size = resolve_batch_size(args.preset or cfg.batch_preset, args.batch_size)
    except ConfigError as e:
        logger.error("config: %s", e)
        return EXIT_FATAL
    logger.debug("debug mode enabled batch_size=%d", batch_size)

    if args.inspect_data:
        return _inspect_data(args.file, cfg)

    with ExitStack() as stack:
        store, jobs, mode = _open_backends(cfg, stack)
        error_log = ErrorLogBuffer()
        services = ImportServices(
            store=store,
            jobs=jobs,
            storage=LocalObjectStorage(cfg.storage_root, cfg.storage_bucket),
            config=cfg,
            error_log=error_log,
        )
        run_kwargs = {"imported_by": args.imported_by, "batch_size": batch_size}
        try:
            if args.resume is not None:
                worker = ImportWorker(services, resume_job_id=args.resume, **run_kwargs)
                label = args.resume
            else:
                job = submit_import(args.file, services, user_id=args.imported_by)
                worker = ImportWorker(services, job, **run_kwargs)
                label = job.file_name
        except (ImportPipelineError, StorageError) as e:
            logger.error("%s", e)
            return EXIT_FATAL

        with ProgressTracker(label) as tracker:
            _watch(worker, tracker)

    if worker.error is not None:
        logger.error("import: %s", worker.error)
        return EXIT_FATAL
    result = worker.result
    if result is None:
        logger.error("import: worker finished without a result")
        return EXIT_FATAL
    _report(result, mode, error_log)
    return _exit_code(result)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
