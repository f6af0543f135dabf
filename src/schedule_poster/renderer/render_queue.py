"""Single-lane FIFO job queue for render work.

All renders run one at a time, in submission order, on one dedicated
worker thread. A failing job only fails its own Future; the next job
still runs.
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from schedule_poster.exceptions import RenderQueueClosed

logger = logging.getLogger(__name__)


class JobStatus(Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class RenderJob:
    id: int
    fn: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)
    status: JobStatus = JobStatus.QUEUED
    started_at: float | None = None
    finished_at: float | None = None


class RenderQueue:
    """Serializes callables onto one worker thread, first in first out."""

    def __init__(self, name: str = "render") -> None:
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix=name)
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self._closed = False
        self.pending = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def submit(self, fn: Callable[..., Any], *args, **kwargs) -> Future:
        """Queue ``fn(*args, **kwargs)``; the Future carries only this job's outcome."""
        with self._lock:
            if self._closed:
                raise RenderQueueClosed("Render queue is shut down")
            job = RenderJob(id=next(self._ids), fn=fn, args=args, kwargs=kwargs)
            self.pending += 1
            future = self._pool.submit(self._run, job)
        logger.debug("Queued render job %d (%d pending)", job.id, self.pending)
        return future

    def _run(self, job: RenderJob) -> Any:
        job.status = JobStatus.RUNNING
        job.started_at = time.monotonic()
        logger.debug("Render job %d started after %.3fs in queue",
                     job.id, job.started_at - job.submitted_at)
        try:
            result = job.fn(*job.args, **job.kwargs)
        except Exception as exc:
            job.status = JobStatus.FAILED
            logger.warning("Render job %d failed: %s", job.id, exc)
            raise
        else:
            job.status = JobStatus.SUCCEEDED
            return result
        finally:
            job.finished_at = time.monotonic()
            with self._lock:
                self.pending -= 1
            logger.debug("Render job %d finished in %.3fs (%s)",
                         job.id, job.finished_at - job.started_at, job.status.value)

    def shutdown(self, wait: bool = True, final: Callable[[], Any] | None = None) -> None:
        """Stop accepting jobs; with ``wait`` block until queued jobs finish.

        ``final`` runs on the worker thread after every already-queued job,
        which is where thread-bound resources must be released.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            if final is not None:
                self.pending += 1
                self._pool.submit(self._run, RenderJob(id=next(self._ids), fn=final))
        self._pool.shutdown(wait=wait)
