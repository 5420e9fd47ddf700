from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from ..db.batch_upsert import BatchMetrics, BatchUpsertError
from ..logging.error_log import ErrorLogBuffer
from ..models.error_record import CLIENT_BATCH_ERROR, CONTRACT_BATCH_ERROR, ErrorRecord
from ..models.import_job import ImportJob
from ..models.processing_result import BatchStatsAccumulator
from ..models.records import ClientRecord, ContractRecord
from .buffer import ImportBuffer

"""Buffered Persister.

Client batches are upserted strictly one after another. A failed batch is
recorded once (aggregate entry, all its rows counted as errors) and skipped,
together with every contract that belongs to it. Contracts of a successful
client batch receive the returned client ids and are upserted right after
it; a contract batch failure never touches the client batch.
"""

__all__ = [
    "PersistOutcome",
    "BufferedPersister",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersistOutcome:
    batches: int
    failed_batches: int
    stopped: bool = False
    # 停止時: 未保存クライアントの最小 source_row (0-based データ行)
    resume_offset: int | None = None
    # 停止時: offset 以降の行から既に保存済みの契約数
    late_contracts: int = 0


def _chunks(items: Sequence[Any], size: int) -> list[Sequence[Any]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class BufferedPersister:
    def __init__(
        self,
        store: Any,
        batch_size: int,
        pause_seconds: float = 0.0,
        stats: BatchStatsAccumulator | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive: {batch_size}")
        self.store = store
        self.batch_size = batch_size
        self.pause_seconds = pause_seconds
        self.stats = stats if stats is not None else BatchStatsAccumulator()
        self._sleep = sleep

    def _on_metrics(self, metrics: BatchMetrics) -> None:
        self.stats.add_batch_time(metrics.elapsed_seconds)

    def _record(
        self,
        job: ImportJob,
        error_log: ErrorLogBuffer | None,
        row: int,
        error_type: str,
        message: str,
    ) -> None:
        record = ErrorRecord.create(job.file_name, row, error_type, message)
        job.record_error(record)
        if error_log is not None:
            error_log.append(record)

    def _persist_contracts(
        self,
        job: ImportJob,
        contracts: list[ContractRecord],
        first_row: int,
        error_log: ErrorLogBuffer | None,
        inserted_rows: list[int],
    ) -> None:
        for chunk in _chunks(contracts, self.batch_size):
            try:
                job.contracts_inserted += self.store.upsert_contracts(
                    list(chunk), metrics_callback=self._on_metrics
                )
            except BatchUpsertError as e:
                logger.warning("contract batch failed rows=%d: %s", len(chunk), e)
                self._record(
                    job,
                    error_log,
                    first_row,
                    CONTRACT_BATCH_ERROR,
                    f"contract batch of {len(chunk)} failed: {e}",
                )
            else:
                inserted_rows.extend(c.source_row for c in chunk)

    def _persist_orphans(
        self,
        buffer: ImportBuffer,
        job: ImportJob,
        error_log: ErrorLogBuffer | None,
        inserted_rows: list[int],
    ) -> None:
        """Contracts whose client was stored before a resume offset."""
        orphans = buffer.orphan_contracts()
        if not orphans:
            return
        first_row = orphans[0].source_row + 2
        try:
            ids = self.store.client_ids(sorted({c.cpf for c in orphans}))
        except BatchUpsertError as e:
            logger.warning("client id lookup failed for %d contracts: %s", len(orphans), e)
            self._record(
                job,
                error_log,
                first_row,
                CONTRACT_BATCH_ERROR,
                f"client id lookup for {len(orphans)} contracts failed: {e}",
            )
            return
        attached: list[ContractRecord] = []
        for contract in orphans:
            client_id = ids.get(contract.cpf)
            if client_id is None:
                # クライアント側のバッチが失敗済み
                continue
            contract.client_id = client_id
            attached.append(contract)
        logger.debug("orphan contracts=%d attached=%d", len(orphans), len(attached))
        if attached:
            self._persist_contracts(job, attached, first_row, error_log, inserted_rows)

    def persist(
        self,
        buffer: ImportBuffer,
        job: ImportJob,
        error_log: ErrorLogBuffer | None = None,
        on_batch: Callable[[ImportJob], None] | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> PersistOutcome:
        """Write every buffered client (and its contracts) in batches.

        Orphan contracts of a resumed import go first. ``should_stop`` is
        checked before each client batch; an issued batch always completes.
        ``on_batch`` runs after every batch with the updated job.
        """
        inserted_rows: list[int] = []
        self._persist_orphans(buffer, job, error_log, inserted_rows)

        clients: list[ClientRecord] = list(buffer)
        batches = _chunks(clients, self.batch_size)
        failed = 0
        for number, batch in enumerate(batches, start=1):
            if should_stop is not None and should_stop():
                offset = batch[0].source_row
                logger.info("persist stopped before batch %d/%d", number, len(batches))
                return PersistOutcome(
                    batches=number - 1,
                    failed_batches=failed,
                    stopped=True,
                    resume_offset=offset,
                    late_contracts=sum(1 for r in inserted_rows if r >= offset),
                )

            first_row = batch[0].source_row + 2  # ヘッダー行 = 1
            try:
                ids = self.store.upsert_clients(list(batch), metrics_callback=self._on_metrics)
            except BatchUpsertError as e:
                failed += 1
                job.error_count += len(batch)
                logger.warning(
                    "client batch %d/%d failed rows=%d first_row=%d: %s",
                    number, len(batches), len(batch), first_row, e,
                )
                self._record(
                    job,
                    error_log,
                    first_row,
                    CLIENT_BATCH_ERROR,
                    f"batch {number} of {len(batch)} clients starting at row {first_row} failed: {e}",
                )
            else:
                job.success_count += len(batch)
                contracts: list[ContractRecord] = []
                for client in batch:
                    client_id = ids.get(client.cpf)
                    for contract in buffer.contracts_for(client.cpf):
                        if client_id is None:
                            continue
                        contract.client_id = client_id
                        contracts.append(contract)
                if contracts:
                    self._persist_contracts(job, contracts, first_row, error_log, inserted_rows)

            if on_batch is not None:
                on_batch(job)
            if self.pause_seconds > 0:
                self._sleep(self.pause_seconds)

        return PersistOutcome(batches=len(batches), failed_batches=failed)
