"""Deferred one-shot job completion using asyncio.

Each submitted job gets its own task keyed by job id: it sleeps for the job's
delay, runs the worker in a thread executor and records the outcome in the
store. Tasks are cancellable until they finish, so deleting a job never leaves
orphaned work behind. A background sweep evicts expired records.
"""

import asyncio
import logging
from datetime import timedelta
from typing import Callable, Dict, Optional

from reportgen.jobs.dispatcher import JobDispatcher
from reportgen.jobs.models import JobRecord
from reportgen.jobs.store import JobStore

logger = logging.getLogger(__name__)

GENERATION_FAILED = "Failed to generate report"


class DeferredCompletionDispatcher(JobDispatcher):
    """Schedules one delayed completion per job on the running event loop."""

    def __init__(
        self,
        store: JobStore,
        worker_fn: Callable[[JobRecord], str],
        delay_fn: Callable[[JobRecord], float],
        expiry: timedelta,
        cleanup_interval: float = 60.0,
    ):
        """
        worker_fn: callable(job: JobRecord) -> str
            Synchronous function producing the artifact reference (file path).
            Called in a thread executor; raising marks the job failed.
        delay_fn: callable(job: JobRecord) -> float
            Seconds to wait before running the worker.
        """
        self._store = store
        self._worker_fn = worker_fn
        self._delay_fn = delay_fn
        self._expiry = expiry
        self._cleanup_interval = cleanup_interval
        self._tasks: Dict[str, asyncio.Task] = {}
        self._sweeper: Optional[asyncio.Task] = None
        self._running = False

    async def submit(self, job: JobRecord) -> str:
        delay = self._delay_fn(job)
        task = asyncio.create_task(self._complete_later(job.id, delay))
        self._tasks[job.id] = task
        task.add_done_callback(lambda t, job_id=job.id: self._forget(job_id, t))
        logger.info("Job %s (%r) scheduled to complete in %.2fs", job.id, job.name, delay)
        return job.id

    def cancel(self, job_id: str) -> bool:
        task = self._tasks.pop(job_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        logger.info("Job %s cancelled", job_id)
        return True

    def is_scheduled(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    @property
    def scheduled_count(self) -> int:
        return sum(1 for task in self._tasks.values() if not task.done())

    async def start(self) -> None:
        self._running = True
        self._sweeper = asyncio.create_task(self._sweep_loop())

    async def stop(self) -> None:
        self._running = False
        tasks = list(self._tasks.values())
        if self._sweeper:
            tasks.append(self._sweeper)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._sweeper = None

    def purge_expired(self) -> int:
        """Evict expired records and cancel their pending work."""
        removed = self._store.purge_expired(self._expiry)
        for job_id in removed:
            self.cancel(job_id)
        if removed:
            logger.info("Evicted %d expired job(s)", len(removed))
        return len(removed)

    async def _sweep_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._cleanup_interval)
            except asyncio.CancelledError:
                break
            self.purge_expired()

    async def _complete_later(self, job_id: str, delay: float) -> None:
        await asyncio.sleep(delay)

        job = self._store.get(job_id)
        if job is None or job.is_terminal:
            return

        try:
            loop = asyncio.get_running_loop()
            file_path = await loop.run_in_executor(None, self._worker_fn, job)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Job %s failed", job_id)
            if self._store.get(job_id) is not None:
                self._store.fail(job_id, GENERATION_FAILED)
            return

        # The record may have been deleted while the worker ran
        if self._store.get(job_id) is None:
            return
        self._store.complete(job_id, file_path)
        logger.info("Job %s completed: %s", job_id, file_path)

    def _forget(self, job_id: str, task: asyncio.Task) -> None:
        if self._tasks.get(job_id) is task:
            del self._tasks[job_id]
