from __future__ import annotations

from collections import Counter
from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ROW_ERROR_TYPES, ErrorRecord

"""Error log buffering.

JSON Lines with a fixed key set (timestamp, file, row, error_type, message).
One file per process run: ``logs/errors-YYYYMMDD-HHMMSS.log`` (UTC), created
on the first non-empty flush. Records stay pending until the import run ends,
so rows that a pause hands back to the next run can still be taken out.
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """Pending ErrorRecords of the running import plus per-type totals.

    Unlike the bounded per-job error list, nothing is evicted here.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir if logs_dir is not None else LOGS_DIR
        self.total_written = 0
        self.type_counts: Counter[str] = Counter()

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)
        self.type_counts[record.error_type] += 1

    def __len__(self) -> int:
        return len(self._records)

    def discard_rows(self, file_name: str, from_row: int) -> int:
        """Drop pending row rejections of ``file_name`` at line ``from_row`` or later."""
        kept: list[ErrorRecord] = []
        for r in self._records:
            if r.file == file_name and r.error_type in ROW_ERROR_TYPES and r.row >= from_row:
                self.type_counts[r.error_type] -= 1
                continue
            kept.append(r)
        dropped = len(self._records) - len(kept)
        self._records = kept
        self.type_counts += Counter()  # ゼロ件のキーを除去
        return dropped

    def flush(self) -> Path | None:
        """Write pending records; returns the file path, or None if nothing was ever written."""
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self.total_written += len(self._records)
        self._records.clear()
        return fp
