from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.processing_result import ProgressSnapshot

"""Row progress display with tqdm (TTY only).

Non-TTY output (CI, pipes) gets no bar at all to avoid ANSI spam; the
SUMMARY line and log output are unaffected.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """Consumes ProgressSnapshots and mirrors them on one tqdm bar.

    Usable directly as the orchestrator's ``progress_callback``.
    """

    def __init__(self, file_name: str, *, description: str = "Importing") -> None:
        self.file_name = file_name
        self.description = description
        self.last: ProgressSnapshot | None = None
        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None = None

    def _ensure_bar(self, total: int) -> TqdmType[Any] | None:
        if not self.enabled:
            return None
        if self.pbar is None:
            self.pbar = tqdm(
                total=total,
                desc=f"{self.description} ({self.file_name})",
                unit="row",
                leave=True,
                position=0,
                ncols=100,
                ascii=True,
            )
        elif self.pbar.total != total:
            self.pbar.total = total
        return self.pbar

    def __call__(self, snapshot: ProgressSnapshot) -> None:
        self.update(snapshot)

    def update(self, snapshot: ProgressSnapshot) -> None:
        previous = self.last.processed_rows if self.last is not None else 0
        self.last = snapshot
        pbar = self._ensure_bar(snapshot.total_rows)
        if pbar is None:
            return
        if snapshot.processed_rows > previous:
            pbar.update(snapshot.processed_rows - previous)
        pbar.set_postfix(
            phase=snapshot.phase,
            ok=snapshot.success_count,
            err=snapshot.error_count,
            dup=snapshot.duplicate_count,
        )

    def close(self) -> None:
        if self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
