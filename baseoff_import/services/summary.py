from __future__ import annotations

from ..models.processing_result import ImportResult

"""SUMMARY line rendering.

Format:
SUMMARY file=<name> status=<status> rows=<processed>/<total> success=<n>
errors=<n> duplicates=<n> contracts=<n> elapsed_sec=<x> throughput_rps=<y>
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without a fraction, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if abs(value) < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return str(round(value, 3))


def render_summary_line(result: ImportResult) -> str:
    """Render the SUMMARY line for one import.

    Spaces in the file name are replaced so the line stays ``key=value``
    splittable.

    Examples:
        >>> from datetime import datetime, timezone
        >>> start = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
        >>> end = datetime(2024, 1, 1, 10, 0, 2, tzinfo=timezone.utc)
        >>> result = ImportResult(
        ...     job_id="j1", file_name="base.csv", status="completed", total_rows=10,
        ...     processed_rows=10, success_count=9, error_count=1, duplicate_count=0,
        ...     contracts_detected=3, contracts_inserted=3, contract_duplicates=0,
        ...     start_time=start, end_time=end, elapsed_seconds=2.0,
        ...     throughput_rows_per_sec=5.0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY file=base.csv status=completed rows=10/10 success=9 errors=1 duplicates=0 contracts=3 elapsed_sec=2 throughput_rps=5'
    """
    name = result.file_name.replace(" ", "_") or "-"
    return (
        f"SUMMARY file={name} "
        f"status={result.status} "
        f"rows={result.processed_rows}/{result.total_rows} "
        f"success={result.success_count} "
        f"errors={result.error_count} "
        f"duplicates={result.duplicate_count} "
        f"contracts={result.contracts_inserted} "
        f"elapsed_sec={format_number(result.elapsed_seconds)} "
        f"throughput_rps={format_number(result.throughput_rows_per_sec)}"
    )
