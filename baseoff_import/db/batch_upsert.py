from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch upsert via psycopg2.extras.execute_values.

One call == one ``INSERT .. VALUES %s ON CONFLICT (key) DO UPDATE`` statement
(page_size is the batch length so a batch is never split). Rows within one
call must be unique on the conflict key; the buffer guarantees that.
"""

__all__ = [
    "BatchUpsertError",
    "BatchMetrics",
    "UpsertResult",
    "build_upsert_sql",
    "batch_upsert",
]


class BatchUpsertError(Exception):
    """Wraps any driver error raised by one batch upsert call."""


@dataclass(frozen=True)
class BatchMetrics:
    """Timing of a single batch upsert."""
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float  # time.time()
    end_time: float


@dataclass(frozen=True)
class UpsertResult:
    affected_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _quote(name: str) -> str:
    return f'"{name}"'


def build_upsert_sql(
    table: str,
    columns: Sequence[str],
    conflict_columns: Sequence[str],
    returning: Sequence[str] | None = None,
) -> str:
    """Upsert statement: conflict key columns are never overwritten."""
    cols_sql = ",".join(_quote(c) for c in columns)
    conflict_sql = ",".join(_quote(c) for c in conflict_columns)
    updates = [c for c in columns if c not in conflict_columns]
    if updates:
        set_sql = ", ".join(f"{_quote(c)} = EXCLUDED.{_quote(c)}" for c in updates)
        action = f"DO UPDATE SET {set_sql}"
    else:
        action = "DO NOTHING"
    sql = f"INSERT INTO {table} ({cols_sql}) VALUES %s ON CONFLICT ({conflict_sql}) {action}"
    if returning:
        sql += " RETURNING " + ",".join(_quote(c) for c in returning)
    return sql


def batch_upsert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    conflict_columns: Sequence[str],
    returning: Sequence[str] | None = None,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> UpsertResult:
    """Upsert ``rows`` into ``table`` in one statement.

    Parameters
    ----------
    cursor: psycopg2 cursor (transaction handled by the caller)
    table: 対象テーブル名 (設定値、スキーマ検証済み)
    columns: 列順序 (rows の各要素と一致)
    conflict_columns: ON CONFLICT 対象 (一意制約と一致)
    returning: RETURNING 列。指定時は returned_values に行タプルを格納
    metrics_callback: receives BatchMetrics after the call, success or not.
        Not invoked for an empty ``rows``.
    """
    rows_list = list(rows)
    if not rows_list:
        return UpsertResult(affected_rows=0, returned_values=[] if returning else None)

    sql = build_upsert_sql(table, columns, conflict_columns, returning)

    start_time = time.time()
    try:
        returned = execute_values(
            cursor,
            sql,
            rows_list,
            page_size=len(rows_list),
            fetch=bool(returning),
        )
    except Exception as e:
        raise BatchUpsertError(str(e).strip() or e.__class__.__name__) from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    table=table,
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    return UpsertResult(
        affected_rows=len(rows_list),
        returned_values=list(returned) if returning else None,
    )
