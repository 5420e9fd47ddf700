from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for row/batch level error logging.

Row-level rejections carry the 1-based file line of the offending row
(header = line 1, first data row = line 2). Batch and job level entries have
no single row and use ``row=-1``.

The JSON Lines shape is fixed: no keys beyond the dataclass fields.
"""

__all__ = [
    "ErrorRecord",
    "MISSING_CPF",
    "MISSING_NB",
    "MISSING_NOME",
    "CLIENT_BATCH_ERROR",
    "CONTRACT_BATCH_ERROR",
    "JOB_FAILED",
    "ROW_ERROR_TYPES",
]

MISSING_CPF = "MISSING_CPF"
MISSING_NB = "MISSING_NB"
MISSING_NOME = "MISSING_NOME"
CLIENT_BATCH_ERROR = "CLIENT_BATCH_ERROR"
CONTRACT_BATCH_ERROR = "CONTRACT_BATCH_ERROR"
JOB_FAILED = "JOB_FAILED"

# 行単位の却下 (バッチ/ジョブ単位ではない)
ROW_ERROR_TYPES = frozenset({MISSING_CPF, MISSING_NB, MISSING_NOME})


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        file: source file name
        row: file line number, -1 when not attributable to one row
        error_type: UPPER_SNAKE classification
        message: human readable reason shown to the operator
    """
    timestamp: str
    file: str
    row: int
    error_type: str
    message: str

    @staticmethod
    def create(file: str, row: int, error_type: str, message: str) -> ErrorRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            file=file,
            row=row,
            error_type=error_type,
            message=message,
        )

    def to_job_entry(self) -> dict[str, object]:
        """Compact ``(row, reason)`` form stored on the job row."""
        return {
            "row": self.row,
            "error": self.message,
            "error_type": self.error_type,
            "timestamp": self.timestamp,
        }

    @staticmethod
    def from_job_entry(file: str, entry: dict[str, object]) -> ErrorRecord:
        return ErrorRecord(
            timestamp=str(entry.get("timestamp", "")),
            file=file,
            row=int(entry.get("row", -1)),  # type: ignore[arg-type]
            error_type=str(entry.get("error_type", "UNKNOWN")),
            message=str(entry.get("error", "")),
        )

    def to_json_line(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)
