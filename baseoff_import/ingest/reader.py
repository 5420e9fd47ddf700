from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import pandas as pd

from ..errors import EmptyFileError, FileRejectedError
from ..models.cell import Cell, Number, RawRow, Text, to_cell

"""File Ingestor: tabular file -> matrix of RawRow.

Byte-level decoding is delegated to pandas (openpyxl for .xlsx, xlrd for
.xls, the C parser for delimited text). Everything is read without a header
and without pandas' NA-string heuristics, so a literal "NA" in a name column
survives; only genuinely empty cells become Empty.
"""

__all__ = [
    "DEFAULT_ALLOWED_EXTENSIONS",
    "DEFAULT_MAX_FILE_SIZE_MB",
    "validate_upload",
    "detect_delimiter",
    "read_tabular_file",
]

DEFAULT_ALLOWED_EXTENSIONS = (".csv", ".xlsx", ".xls")
DEFAULT_MAX_FILE_SIZE_MB = 600
_CSV_ENCODINGS = ("utf-8-sig", "latin-1")


def validate_upload(
    path: Path,
    max_size_mb: int = DEFAULT_MAX_FILE_SIZE_MB,
    allowed_extensions: Iterable[str] = DEFAULT_ALLOWED_EXTENSIONS,
) -> int:
    """Reject unsupported or oversized files before any processing.

    Returns the file size in bytes.
    """
    if not path.exists() or not path.is_file():
        raise FileRejectedError(f"file not found: {path}")
    ext = path.suffix.lower()
    allowed = {e.lower() for e in allowed_extensions}
    if ext not in allowed:
        raise FileRejectedError(
            f"unsupported file type '{ext}' (allowed: {', '.join(sorted(allowed))})"
        )
    size = path.stat().st_size
    if size > max_size_mb * 1024 * 1024:
        raise FileRejectedError(f"file too large: {size} bytes (limit {max_size_mb} MB)")
    return size


def detect_delimiter(first_line: str) -> str:
    """Pick ';' or ',' by whichever appears more often in the header line."""
    return ";" if first_line.count(";") > first_line.count(",") else ","


def _read_csv(path: Path) -> pd.DataFrame:
    last_error: Exception | None = None
    for encoding in _CSV_ENCODINGS:
        try:
            with path.open("r", encoding=encoding) as f:
                first_line = f.readline()
            return pd.read_csv(
                path,
                sep=detect_delimiter(first_line),
                header=None,
                dtype=str,
                keep_default_na=False,
                na_values=[],
                skip_blank_lines=True,
                encoding=encoding,
            )
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except pd.errors.EmptyDataError:
            return pd.DataFrame()
    raise EmptyFileError(f"could not decode {path.name}: {last_error}")


def _read_spreadsheet(path: Path) -> pd.DataFrame:
    xls = pd.ExcelFile(path)
    if not xls.sheet_names:
        return pd.DataFrame()
    # 先頭シートのみ対象
    return xls.parse(
        xls.sheet_names[0],
        header=None,
        keep_default_na=False,
        na_values=[],
    )


def _to_raw_row(values: Iterable[object]) -> RawRow:
    cells: list[Cell] = []
    for v in values:
        if isinstance(v, str):
            cells.append(to_cell(v) if v.strip() != "" else to_cell(None))
        else:
            cells.append(to_cell(v))
    return tuple(cells)


def read_tabular_file(path: Path) -> list[RawRow]:
    """Decode a CSV/XLSX/XLS file into a list of RawRow (header included).

    Rows whose cells are all empty are dropped. Raises EmptyFileError when
    nothing remains.
    """
    if path.suffix.lower() == ".csv":
        df = _read_csv(path)
    else:
        df = _read_spreadsheet(path)

    rows: list[RawRow] = []
    for values in df.itertuples(index=False, name=None):
        row = _to_raw_row(values)
        if all(not isinstance(c, (Text, Number)) for c in row):
            continue
        rows.append(row)

    if not rows:
        raise EmptyFileError(f"file {path.name} is empty")
    return rows
