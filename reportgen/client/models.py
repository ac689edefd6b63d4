"""Client-side view of report jobs."""

from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from reportgen.jobs.models import TERMINAL_STATUSES, JobStatus, utcnow

CONNECTION_ERROR = "Connection error"
INVALID_FRAME = "Invalid status update"


class JobStatusView(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: JobStatus = JobStatus.PENDING
    error: Optional[str] = None
    file_path: Optional[str] = Field(default=None, alias="filePath")
    timestamp: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_frame(cls, frame: Dict[str, Any]) -> "JobStatusView":
        """Frames without a status (not found, expired) count as failures."""
        if not frame.get("status"):
            return cls(status=JobStatus.FAILED, error=frame.get("error") or "Unknown error")
        return cls(status=frame["status"], error=frame.get("error"), file_path=frame.get("filePath"))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class ClientJob(BaseModel):
    """Mirror of a server job plus client-only download bookkeeping."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    status: JobStatusView = Field(default_factory=JobStatusView)
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    downloaded: bool = False

    def is_expired(self, expiry: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or utcnow()
        return now - self.created_at >= expiry
