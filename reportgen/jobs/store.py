"""Job store interface and in-memory implementation.

The store is the single source of truth for job status. Listeners registered
per job id are called with the new record after every write, or with ``None``
once the record is deleted; the status stream uses them instead of polling.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set

from reportgen.errors import InvalidTransition, NotFound
from reportgen.jobs.models import JobRecord, JobStatus, new_job_id, utcnow

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[JobRecord]], None]


class JobStore(ABC):
    """Abstract job store: get/set/delete by id plus change subscriptions."""

    @abstractmethod
    def get(self, job_id: str) -> Optional[JobRecord]:
        ...

    @abstractmethod
    def set(self, job: JobRecord) -> None:
        ...

    @abstractmethod
    def delete(self, job_id: str) -> Optional[JobRecord]:
        """Remove a record. Returns the removed record, if any."""
        ...

    @abstractmethod
    def all(self) -> List[JobRecord]:
        ...

    @abstractmethod
    def subscribe(self, job_id: str, listener: Listener) -> None:
        ...

    @abstractmethod
    def unsubscribe(self, job_id: str, listener: Listener) -> None:
        ...

    @abstractmethod
    def mark_expired(self, job_id: str, when: datetime) -> None:
        """Remember that a record was evicted by the expiry sweep."""
        ...

    @abstractmethod
    def take_expired(self, job_id: str) -> bool:
        """Consume the expiry marker of a swept record. True if there was one."""
        ...

    @abstractmethod
    def forget_expired(self, before: datetime) -> None:
        """Drop expiry markers recorded before the given time."""
        ...

    # Lifecycle helpers shared by all implementations

    def create(self, name: str, simulate_failure: bool = False) -> JobRecord:
        job_id = new_job_id()
        while self.get(job_id) is not None:
            job_id = new_job_id()
        job = JobRecord(id=job_id, name=name, simulate_failure=simulate_failure)
        self.set(job)
        return job

    def complete(self, job_id: str, file_path: str) -> JobRecord:
        return self._finish(job_id, JobStatus.COMPLETED, file_path=file_path)

    def fail(self, job_id: str, error: str) -> JobRecord:
        return self._finish(job_id, JobStatus.FAILED, error=error)

    def purge_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> List[str]:
        """Evict expired records, keeping a marker so the next lookup reports them as expired.

        Markers live for one more expiry window, after which the id is simply unknown.
        """
        now = now or utcnow()
        self.forget_expired(now - ttl)
        expired = [job.id for job in self.all() if job.is_expired(ttl, now)]
        for job_id in expired:
            self.mark_expired(job_id, now)
            self.delete(job_id)
        return expired

    def _finish(self, job_id: str, status: JobStatus, **payload) -> JobRecord:
        job = self.get(job_id)
        if job is None:
            raise NotFound()
        if job.is_terminal:
            raise InvalidTransition(
                f"Report {job_id} is already {job.status.value}, cannot mark it {status.value}"
            )
        updated = job.model_copy(update={"status": status, **payload})
        self.set(updated)
        return updated


class InMemoryJobStore(JobStore):
    """Process-local store. All access happens on the event loop thread."""

    def __init__(self):
        self._jobs: Dict[str, JobRecord] = {}
        self._listeners: Dict[str, Set[Listener]] = {}
        self._expired: Dict[str, datetime] = {}

    def get(self, job_id: str) -> Optional[JobRecord]:
        return self._jobs.get(job_id)

    def set(self, job: JobRecord) -> None:
        self._jobs[job.id] = job
        self._notify(job.id, job)

    def delete(self, job_id: str) -> Optional[JobRecord]:
        job = self._jobs.pop(job_id, None)
        if job is not None:
            self._notify(job_id, None)
        return job

    def all(self) -> List[JobRecord]:
        return list(self._jobs.values())

    def subscribe(self, job_id: str, listener: Listener) -> None:
        self._listeners.setdefault(job_id, set()).add(listener)

    def unsubscribe(self, job_id: str, listener: Listener) -> None:
        listeners = self._listeners.get(job_id)
        if not listeners:
            return
        listeners.discard(listener)
        if not listeners:
            del self._listeners[job_id]

    def mark_expired(self, job_id: str, when: datetime) -> None:
        self._expired[job_id] = when

    def take_expired(self, job_id: str) -> bool:
        return self._expired.pop(job_id, None) is not None

    def forget_expired(self, before: datetime) -> None:
        for job_id, when in list(self._expired.items()):
            if when < before:
                del self._expired[job_id]

    def subscriber_count(self, job_id: str) -> int:
        return len(self._listeners.get(job_id, ()))

    def _notify(self, job_id: str, job: Optional[JobRecord]) -> None:
        for listener in list(self._listeners.get(job_id, ())):
            try:
                listener(job)
            except Exception:
                logger.exception("Listener for job %s raised", job_id)
