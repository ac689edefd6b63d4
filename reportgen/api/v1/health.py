"""Health check endpoint."""

from collections import Counter

from fastapi import APIRouter, Depends, Request
import platform
import sys

from reportgen.jobs.dispatcher import JobDispatcher
from reportgen.jobs.models import JobStatus
from reportgen.jobs.store import JobStore
from reportgen.api.v1.reports import get_dispatcher, get_store

router = APIRouter()


@router.get("/health")
async def health_check(
    request: Request,
    store: JobStore = Depends(get_store),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Service health, job counts and system info."""
    counts = Counter(job.status for job in store.all())
    return {
        "status": "healthy",
        "version": request.app.version,
        "jobs": {status.value: counts.get(status, 0) for status in JobStatus},
        "scheduled": getattr(dispatcher, "scheduled_count", None),
        "python_version": sys.version,
        "platform": platform.platform(),
    }
