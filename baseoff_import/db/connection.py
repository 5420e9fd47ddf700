from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import psycopg2

from ..config.loader import DatabaseConfig

"""PostgreSQL connection helper.

DSN resolution order:
    1. DATABASE_URL / PGDSN (environment, typically loaded from .env)
    2. database.dsn from config/import.yml
    3. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE, each falling back
       to the matching database.* config key
"""

__all__ = [
    "resolve_dsn",
    "db_connection",
    "db_connection_disabled",
]

logger = logging.getLogger(__name__)


def db_connection_disabled(environ: Mapping[str, str] | None = None) -> bool:
    env = os.environ if environ is None else environ
    return env.get("DISABLE_DB_CONNECT") == "1"


def resolve_dsn(db_cfg: DatabaseConfig, environ: Mapping[str, str] | None = None) -> str:
    env = os.environ if environ is None else environ
    dsn = env.get("DATABASE_URL") or env.get("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = env.get("PGHOST", db_cfg.host or "localhost")
    port = env.get("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = env.get("PGUSER", db_cfg.user or "postgres")
    password = env.get("PGPASSWORD", db_cfg.password or "")
    database = env.get("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn


@contextmanager
def db_connection(db_cfg: DatabaseConfig) -> Iterator[Any]:
    """Yield a psycopg2 connection; every store commits its own batches."""
    conn = psycopg2.connect(resolve_dsn(db_cfg))
    conn.autocommit = False  # 明示トランザクション境界 (store がバッチ毎に commit/rollback)
    try:
        yield conn
    finally:
        if not conn.closed:
            try:
                conn.rollback()
            except psycopg2.Error as e:  # 接続断など
                logger.warning("rollback on close failed: %s", e)
            conn.close()
