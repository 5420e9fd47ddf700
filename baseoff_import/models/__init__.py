"""Domain models for the Base Off bulk importer.

Cells and raw rows (ingest), normalized client/contract records (normalize),
the tracked ImportJob with its status machine, and progress/result types.
"""

from .cell import EMPTY, Cell, Empty, Number, RawRow, Text
from .error_record import ErrorRecord
from .import_job import ImportJob, JobStateError, JobStatus
from .processing_result import BatchStatsAccumulator, ImportResult, ProgressSnapshot
from .records import CLIENT_COLUMNS, CONTRACT_COLUMNS, ClientRecord, ContractRecord

__all__ = [
    # Raw input
    "Cell",
    "Text",
    "Number",
    "Empty",
    "EMPTY",
    "RawRow",
    # Normalized records
    "ClientRecord",
    "ContractRecord",
    "CLIENT_COLUMNS",
    "CONTRACT_COLUMNS",
    # Job tracking
    "ImportJob",
    "JobStatus",
    "JobStateError",
    "ErrorRecord",
    # Results
    "ProgressSnapshot",
    "ImportResult",
    "BatchStatsAccumulator",
]
