from __future__ import annotations

import itertools
import logging
import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from ..config.loader import TablesConfig
from ..models.records import CLIENT_COLUMNS, CONTRACT_COLUMNS, ClientRecord, ContractRecord
from .batch_upsert import BatchMetrics, BatchUpsertError, batch_upsert

"""Backing stores for normalized records.

Both stores expose the same calls used by the persister:

    upsert_clients(records, metrics_callback) -> {cpf: client_id}
    upsert_contracts(records, metrics_callback) -> number of rows upserted
    client_ids(cpfs) -> {cpf: client_id} of clients already stored

Each call is atomic: it either lands completely or raises BatchUpsertError
and leaves nothing behind.
"""

__all__ = [
    "CLIENT_CONFLICT_COLUMNS",
    "CONTRACT_CONFLICT_COLUMNS",
    "PostgresStore",
    "InMemoryStore",
]

logger = logging.getLogger(__name__)

CLIENT_CONFLICT_COLUMNS = ("cpf",)
CONTRACT_CONFLICT_COLUMNS = ("cpf", "contrato")

MetricsCallback = Callable[[BatchMetrics], None]


class PostgresStore:
    """psycopg2 backed store; one transaction per batch call."""

    def __init__(self, connection: Any, tables: TablesConfig | None = None) -> None:
        self._conn = connection
        self.tables = tables or TablesConfig()

    @contextmanager
    def _transaction(self) -> Iterator[Any]:
        cursor = self._conn.cursor()
        try:
            yield cursor
            self._conn.commit()
        except Exception:
            try:
                self._conn.rollback()
            except Exception as rollback_e:
                # 元の例外を優先
                logger.warning("rollback failed: %s", rollback_e)
            raise
        finally:
            cursor.close()

    def upsert_clients(
        self,
        records: Sequence[ClientRecord],
        metrics_callback: MetricsCallback | None = None,
    ) -> dict[str, Any]:
        if not records:
            return {}
        try:
            with self._transaction() as cursor:
                result = batch_upsert(
                    cursor,
                    self.tables.clients,
                    CLIENT_COLUMNS,
                    (r.as_row() for r in records),
                    conflict_columns=CLIENT_CONFLICT_COLUMNS,
                    returning=("id", "cpf"),
                    metrics_callback=metrics_callback,
                )
        except BatchUpsertError:
            raise
        except Exception as e:  # commit 失敗等
            raise BatchUpsertError(str(e)) from e
        return {cpf: client_id for client_id, cpf in result.returned_values or []}

    def upsert_contracts(
        self,
        records: Sequence[ContractRecord],
        metrics_callback: MetricsCallback | None = None,
    ) -> int:
        if not records:
            return 0
        try:
            with self._transaction() as cursor:
                result = batch_upsert(
                    cursor,
                    self.tables.contracts,
                    CONTRACT_COLUMNS,
                    (r.as_row() for r in records),
                    conflict_columns=CONTRACT_CONFLICT_COLUMNS,
                    metrics_callback=metrics_callback,
                )
        except BatchUpsertError:
            raise
        except Exception as e:
            raise BatchUpsertError(str(e)) from e
        return result.affected_rows

    def client_ids(self, cpfs: Sequence[str]) -> dict[str, Any]:
        """{cpf: id} of clients already stored."""
        if not cpfs:
            return {}
        try:
            with self._transaction() as cursor:
                cursor.execute(
                    f"SELECT cpf, id FROM {self.tables.clients} WHERE cpf = ANY(%s)",
                    (list(cpfs),),
                )
                found = cursor.fetchall()
        except Exception as e:
            raise BatchUpsertError(str(e)) from e
        return {cpf: client_id for cpf, client_id in found}


class InMemoryStore:
    """Dict backed store with the same upsert semantics (mock mode and tests).

    ``fail_on(kind, records)`` returning True makes that call raise
    BatchUpsertError without applying anything; ``kind`` is "clients" or
    "contracts".
    """

    def __init__(
        self,
        fail_on: Callable[[str, Sequence[Any]], bool] | None = None,
    ) -> None:
        self.clients: dict[str, dict[str, Any]] = {}
        self.contracts: dict[tuple[str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, int]] = []
        self._fail_on = fail_on
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def _check(self, kind: str, records: Sequence[Any]) -> None:
        self.calls.append((kind, len(records)))
        if self._fail_on is not None and self._fail_on(kind, records):
            raise BatchUpsertError(f"simulated {kind} batch failure ({len(records)} rows)")

    @staticmethod
    def _report(kind: str, size: int, metrics_callback: MetricsCallback | None) -> None:
        if metrics_callback is not None:
            metrics_callback(BatchMetrics(kind, size, 0.0, 0.0, 0.0))

    def upsert_clients(
        self,
        records: Sequence[ClientRecord],
        metrics_callback: MetricsCallback | None = None,
    ) -> dict[str, Any]:
        if not records:
            return {}
        with self._lock:
            self._report("clients", len(records), metrics_callback)
            self._check("clients", records)
            ids: dict[str, Any] = {}
            for record in records:
                row = record.to_dict()
                existing = self.clients.get(record.cpf)
                row["id"] = existing["id"] if existing else next(self._ids)
                self.clients[record.cpf] = row
                ids[record.cpf] = row["id"]
            return ids

    def upsert_contracts(
        self,
        records: Sequence[ContractRecord],
        metrics_callback: MetricsCallback | None = None,
    ) -> int:
        if not records:
            return 0
        with self._lock:
            self._report("contracts", len(records), metrics_callback)
            self._check("contracts", records)
            for record in records:
                self.contracts[record.key] = record.to_dict()
            return len(records)

    def client_ids(self, cpfs: Sequence[str]) -> dict[str, Any]:
        with self._lock:
            return {cpf: self.clients[cpf]["id"] for cpf in cpfs if cpf in self.clients}
