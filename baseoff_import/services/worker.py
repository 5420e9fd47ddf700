from __future__ import annotations

import logging
import queue
import threading
from typing import Any

from ..models.import_job import ImportJob
from ..models.processing_result import ImportResult, ProgressSnapshot
from .orchestrator import ImportServices, resume_import, run_import

"""Background import worker.

Runs one import on a dedicated thread. Progress snapshots are published on
a queue; ``pause()`` sets an Event that the pipeline checks between rows
and between batches.
"""

__all__ = [
    "ImportWorker",
]

logger = logging.getLogger(__name__)


class ImportWorker:
    """Thread wrapper around run_import / resume_import.

    Either ``job`` (uploaded or paused job object) or ``resume_job_id`` must
    be given. After ``join()`` the outcome is in ``result`` or ``error``.
    """

    def __init__(
        self,
        services: ImportServices,
        job: ImportJob | None = None,
        *,
        resume_job_id: str | None = None,
        **run_kwargs: Any,
    ) -> None:
        if (job is None) == (resume_job_id is None):
            raise ValueError("pass exactly one of job / resume_job_id")
        self.services = services
        self.job = job
        self.resume_job_id = resume_job_id
        self.run_kwargs = run_kwargs
        self.progress: queue.Queue[ProgressSnapshot] = queue.Queue()
        self.result: ImportResult | None = None
        self.error: BaseException | None = None
        self._pause = threading.Event()
        name = (job.id if job is not None else resume_job_id or "")[:8]
        self._thread = threading.Thread(target=self._run, name=f"import-{name}", daemon=True)

    def _run(self) -> None:
        kwargs = dict(self.run_kwargs)
        kwargs["progress_callback"] = self.progress.put
        kwargs["should_stop"] = self._pause.is_set
        try:
            if self.job is not None:
                self.result = run_import(self.job, self.services, **kwargs)
            else:
                self.result = resume_import(self.resume_job_id or "", self.services, **kwargs)
        except Exception as e:
            self.error = e
            logger.error("import worker %s crashed: %s", self._thread.name, e, exc_info=True)

    def start(self) -> ImportWorker:
        self._thread.start()
        return self

    def pause(self) -> None:
        """Request a pause; the in-flight row or batch still completes."""
        self._pause.set()

    @property
    def pause_requested(self) -> bool:
        return self._pause.is_set()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: float | None = None) -> ImportResult | None:
        self._thread.join(timeout)
        return self.result

    def drain(self) -> list[ProgressSnapshot]:
        """All snapshots published since the last drain."""
        items: list[ProgressSnapshot] = []
        while True:
            try:
                items.append(self.progress.get_nowait())
            except queue.Empty:
                return items
