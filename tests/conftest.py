# Shared pytest fixtures
from __future__ import annotations
import tempfile
from pathlib import Path

import pandas as pd
import pytest

from baseoff_import.config.loader import ImportConfig
from baseoff_import.db.jobs import InMemoryJobRepository
from baseoff_import.db.store import InMemoryStore
from baseoff_import.logging.error_log import ErrorLogBuffer
from baseoff_import.logging.init import reset_logging
from baseoff_import.services.orchestrator import ImportServices
from baseoff_import.storage.local import LocalObjectStorage

HEADER = ["NB", "CPF", "NOME", "DT_NASCIMENTO", "UF", "TELCEL_1", "CONTRATO", "BANCO_EMPRESTIMO", "VL_PARCELA", "PRAZO"]


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.setenv("DISABLE_DB_CONNECT", "1")
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """batch_preset: balanced
batch_size: 2
progress_interval_rows: 2
storage_root: ./storage
storage_bucket: imports
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "import.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


def write_csv(path: Path, rows: list[list[object]], delimiter: str = ";", encoding: str = "utf-8") -> Path:
    lines = [delimiter.join("" if v is None else str(v) for v in row) for row in rows]
    path.write_text("\n".join(lines) + "\n", encoding=encoding)
    return path


def write_xlsx(path: Path, rows: list[list[object]]) -> Path:
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(rows).to_excel(writer, sheet_name="Base", header=False, index=False)
    return path


@pytest.fixture()
def make_csv(temp_workdir: Path):
    def _make(rows: list[list[object]], name: str = "base.csv", **kwargs) -> Path:
        return write_csv(temp_workdir / "data" / name, rows, **kwargs)
    return _make


@pytest.fixture()
def make_xlsx(temp_workdir: Path):
    def _make(rows: list[list[object]], name: str = "base.xlsx") -> Path:
        return write_xlsx(temp_workdir / "data" / name, rows)
    return _make


@pytest.fixture()
def sample_rows() -> list[list[object]]:
    return [
        HEADER,
        ["111", "123.456.789-09", "Maria Souza", "15/03/1960", "sp", "(11) 98888-7777", "C-1", "001", "150,75", "84"],
        ["222", "98765432100", "Jose Lima", "1955-07-01", "rj", "", "C-2", "237", "99,90", "72"],
        ["333", "", "Sem CPF", "", "", "", "", "", "", ""],
        ["444", "12345678909", "Maria Duplicada", "", "", "", "C-3", "001", "10,00", "12"],
        ["555", "11122233344", "", "", "", "", "", "", "", ""],
        ["666", "55566677788", "Ana Paula", "31/02/1970", "mg", "", "", "", "", ""],
    ]


@pytest.fixture()
def memory_services(temp_workdir: Path) -> ImportServices:
    return ImportServices(
        store=InMemoryStore(),
        jobs=InMemoryJobRepository(),
        storage=LocalObjectStorage(temp_workdir / "storage", "imports"),
        config=ImportConfig(batch_size=2, progress_interval_rows=2),
        error_log=ErrorLogBuffer(temp_workdir / "logs"),
        sleep=lambda seconds: None,
    )


@pytest.fixture()
def error_log_schema() -> dict:
    # 1 行 = 1 レコード、キー固定
    return {
        "type": "object",
        "additionalProperties": False,
        "required": ["timestamp", "file", "row", "error_type", "message"],
        "properties": {
            "timestamp": {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}T.*Z$"},
            "file": {"type": "string"},
            "row": {"type": "integer", "minimum": -1},
            "error_type": {"type": "string", "pattern": "^[A-Z][A-Z_]*$"},
            "message": {"type": "string"},
        },
    }


@pytest.fixture()
def resume_rows() -> list[list[object]]:
    # batch_size=2 で 2 バッチ目の先頭 (C) 以降に却下行・重複行が来る配置
    return [
        ["NB", "CPF", "NOME", "CONTRATO", "BANCO_EMPRESTIMO"],
        ["1", "11111111111", "First A", "K1", "001"],
        ["2", "22222222222", "Second B", "", ""],
        ["3", "33333333333", "Third C", "", ""],
        ["4", "11111111111", "Dup A", "K2", "001"],
        ["5", "", "No CPF", "", ""],
        ["6", "11111111111", "Again A", "K1", "001"],
    ]
