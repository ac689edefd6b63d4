"""Job record data model for report generation."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    return str(uuid.uuid4())


class JobStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED})


class JobRecord(BaseModel):
    """Server-side record of one report generation job.

    Records are immutable; a status change replaces the stored record with an
    updated copy so ``id``, ``name`` and ``created_at`` never change.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_job_id)
    name: str = Field(min_length=1)
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    file_path: Optional[str] = None
    error: Optional[str] = None
    simulate_failure: bool = False

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def is_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now - self.created_at > ttl

    def to_frame(self) -> Dict[str, Any]:
        """Wire representation sent on the status stream."""
        frame: Dict[str, Any] = {
            "id": self.id,
            "status": self.status.value,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
        }
        if self.file_path is not None:
            frame["filePath"] = self.file_path
        if self.error is not None:
            frame["error"] = self.error
        return frame
