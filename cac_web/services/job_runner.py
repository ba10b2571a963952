from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import timedelta
from typing import Callable, Optional

from cac_web.domain.models import utcnow
from cac_web.repositories.analysis_repository import AnalysisRepository

logger = logging.getLogger(__name__)

STALE_JOB_MESSAGE = "Analysis timed out"


class JobRunner:
    """
    Runs analysis jobs off the request thread on a bounded pool.
    The web layer only submits; it never waits on the returned future.
    """

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="analysis-job")

    def submit(self, job_id: str, fn: Callable[[], None]) -> Future:
        def _run() -> None:
            try:
                fn()
            except Exception:
                # the job function records its own failure; this only guards the pool
                logger.exception("Job %s raised past its own error handling", job_id)

        logger.debug("Submitting job %s", job_id)
        return self._executor.submit(_run)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


class JobWatchdog:
    """
    Fails `running` jobs that have not been touched for `stale_after`.
    Covers jobs orphaned by a restart or stuck on a provider call.
    """

    def __init__(
        self,
        repo: AnalysisRepository,
        stale_after: timedelta,
        interval_seconds: float,
        clock: Callable = utcnow,
    ):
        self.repo = repo
        self.stale_after = stale_after
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sweep(self) -> int:
        cutoff = self._clock() - self.stale_after
        count = self.repo.fail_stale(cutoff, STALE_JOB_MESSAGE)
        if count:
            logger.warning("Watchdog failed %d stale job(s) not updated since %s", count, cutoff)
        return count

    def _loop(self) -> None:
        while not self._stop.wait(self.interval_seconds):
            try:
                self.sweep()
            except Exception:
                logger.exception("Watchdog sweep failed")

    def start(self) -> None:
        if self.interval_seconds <= 0 or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._loop, name="analysis-watchdog", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=5)
            self._thread = None
