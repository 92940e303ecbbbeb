from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class DeferredJob:
    key: str
    delay_seconds: float
    done: threading.Event = field(default_factory=threading.Event)
    error: BaseException | None = None
    cancelled: bool = False

    def wait(self, timeout: float | None = None) -> bool:
        return self.done.wait(timeout)

    @property
    def succeeded(self) -> bool:
        return self.done.is_set() and self.error is None and not self.cancelled


class DeferredJobRunner:
    """Runs one-shot callbacks after a fixed delay on daemon timer threads.

    Jobs are single-attempt; a failing callback is logged and recorded on its
    job handle. ``shutdown`` cancels everything still waiting.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._jobs: dict[str, DeferredJob] = {}
        self._timers: dict[str, threading.Timer] = {}

    def schedule(self, key: str, callback: Callable[[], None], *, delay_seconds: float) -> DeferredJob:
        job = DeferredJob(key=key, delay_seconds=delay_seconds)
        timer = threading.Timer(delay_seconds, self._run, args=(job, callback))
        timer.daemon = True
        with self._lock:
            previous = self._timers.pop(key, None)
            if previous is not None:
                previous.cancel()
            self._jobs[key] = job
            self._timers[key] = timer
        timer.start()
        logger.debug("scheduled job %s in %.2fs", key, delay_seconds)
        return job

    def _run(self, job: DeferredJob, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as exc:
            job.error = exc
            logger.exception("deferred job %s failed", job.key)
        finally:
            with self._lock:
                if self._timers.get(job.key) is not None and self._jobs.get(job.key) is job:
                    self._timers.pop(job.key, None)
            job.done.set()

    def get(self, key: str) -> DeferredJob | None:
        with self._lock:
            return self._jobs.get(key)

    def pending_keys(self) -> list[str]:
        with self._lock:
            return sorted(self._timers)

    def shutdown(self) -> None:
        with self._lock:
            timers = list(self._timers.items())
            self._timers.clear()
        for key, timer in timers:
            timer.cancel()
            job = self._jobs.get(key)
            if job is not None and not job.done.is_set():
                job.cancelled = True
                job.done.set()
        if timers:
            logger.info("cancelled %d pending job(s)", len(timers))


job_runner = DeferredJobRunner()
