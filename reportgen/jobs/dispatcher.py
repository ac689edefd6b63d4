"""Job dispatcher interface."""

from abc import ABC, abstractmethod

from reportgen.jobs.models import JobRecord


class JobDispatcher(ABC):
    """Abstract interface for scheduling report generation work."""

    @abstractmethod
    async def submit(self, job: JobRecord) -> str:
        """Schedule a job for processing. Returns job_id without waiting."""
        ...

    @abstractmethod
    def cancel(self, job_id: str) -> bool:
        """Cancel scheduled work for a job. Returns True if a task was cancelled."""
        ...

    @abstractmethod
    def is_scheduled(self, job_id: str) -> bool:
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start background work (e.g., expiry sweep)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher and cancel outstanding work."""
        ...
