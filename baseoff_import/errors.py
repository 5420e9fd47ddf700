from __future__ import annotations

"""Fatal (whole-import) error types.

Row and batch problems never raise out of the pipeline; they become counters
and error log entries. Only the structural failures below abort an import.
"""

__all__ = [
    "ImportPipelineError",
    "FileRejectedError",
    "EmptyFileError",
    "HeaderMappingError",
]


class ImportPipelineError(Exception):
    """Base exception for fatal import errors."""


class FileRejectedError(ImportPipelineError):
    """File exceeds size limits or has an unsupported type (checked before processing)."""


class EmptyFileError(ImportPipelineError):
    """File decoded to no rows, or to a header with no data rows."""


class HeaderMappingError(ImportPipelineError):
    """No header resolved to a canonical field: wrong file or format."""
