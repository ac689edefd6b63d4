"""Report API: start generation, stream status, download the result.

  POST   /generate-report               create a job, returns {jobId}
  GET    /report-status/{job_id}        server-sent events with the job record
  GET    /download-report/{job_id}      CSV attachment once completed
  DELETE /report/{job_id}               cancel scheduled work and drop the job
"""

import asyncio
import json
import logging
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from reportgen.config import Settings
from reportgen.errors import Expired, NotFound, NotReady, ValidationError
from reportgen.jobs.dispatcher import JobDispatcher
from reportgen.jobs.models import JobRecord, JobStatus
from reportgen.jobs.store import JobStore
from reportgen.reports.generator import attachment_filename, render_csv

logger = logging.getLogger(__name__)

router = APIRouter()

REPORT_NOT_FOUND = "Report not found"
REPORT_EXPIRED = "Report expired"


# ---------------------------------------------------------------------------
# Dependencies (wired onto app.state by create_app)
# ---------------------------------------------------------------------------

def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_dispatcher(request: Request) -> JobDispatcher:
    return request.app.state.dispatcher


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class GenerateReportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    simulate_failure: bool = Field(default=False, alias="simulateFailure")


class GenerateReportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")


class DeleteReportResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(alias="jobId")
    deleted: bool = True


# ---------------------------------------------------------------------------
# POST /generate-report
# ---------------------------------------------------------------------------

@router.post("/generate-report", response_model=GenerateReportResponse, response_model_by_alias=True)
async def generate_report(
    request: GenerateReportRequest,
    store: JobStore = Depends(get_store),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Create a pending job and schedule its completion. Does not wait for it."""
    name = request.name
    if name is None or not name.strip():
        raise ValidationError()

    job = store.create(name, simulate_failure=request.simulate_failure)
    await dispatcher.submit(job)
    return GenerateReportResponse(job_id=job.id)


# ---------------------------------------------------------------------------
# GET /report-status/{job_id}
# ---------------------------------------------------------------------------

def _sse(payload: Dict[str, Any]) -> bytes:
    return f"data: {json.dumps(payload)}\n\n".encode("utf-8")


def _evict(job_id: str, store: JobStore, dispatcher: JobDispatcher) -> None:
    store.delete(job_id)
    dispatcher.cancel(job_id)
    logger.info("Job %s expired and was evicted", job_id)


def _missing_message(job_id: str, store: JobStore) -> str:
    """Ids swept by the expiry sweep report as expired once, like an on-access eviction."""
    if store.take_expired(job_id):
        return REPORT_EXPIRED
    return REPORT_NOT_FOUND


async def _status_events(
    job_id: str,
    store: JobStore,
    dispatcher: JobDispatcher,
    expiry: timedelta,
    heartbeat: float,
) -> AsyncIterator[bytes]:
    job = store.get(job_id)
    if job is None:
        yield _sse({"error": _missing_message(job_id, store)})
        return
    if job.is_expired(expiry):
        _evict(job_id, store, dispatcher)
        yield _sse({"error": REPORT_EXPIRED})
        return

    changes: asyncio.Queue = asyncio.Queue()
    listener = changes.put_nowait
    store.subscribe(job_id, listener)
    logger.debug("Status stream opened for job %s", job_id)
    try:
        while True:
            job = store.get(job_id)
            if job is None:
                yield _sse({"error": _missing_message(job_id, store)})
                return
            if job.is_expired(expiry):
                _evict(job_id, store, dispatcher)
                yield _sse({"error": REPORT_EXPIRED})
                return

            yield _sse(job.to_frame())
            if job.is_terminal:
                return

            try:
                await asyncio.wait_for(changes.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                pass
    finally:
        # Runs on normal close and on client disconnect alike
        store.unsubscribe(job_id, listener)
        logger.debug("Status stream closed for job %s", job_id)


@router.get("/report-status/{job_id}")
async def report_status(
    job_id: str,
    store: JobStore = Depends(get_store),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Stream the job record until it reaches a terminal state."""
    events = _status_events(
        job_id,
        store,
        dispatcher,
        expiry=timedelta(minutes=settings.report_expiry_minutes),
        heartbeat=settings.status_heartbeat_seconds,
    )
    return StreamingResponse(
        events,
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


# ---------------------------------------------------------------------------
# GET /download-report/{job_id}
# ---------------------------------------------------------------------------

@router.get("/download-report/{job_id}")
async def download_report(
    job_id: str,
    store: JobStore = Depends(get_store),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
    settings: Settings = Depends(get_settings),
):
    """Return the generated CSV as an attachment."""
    job = store.get(job_id)
    if job is None:
        if store.take_expired(job_id):
            raise Expired()
        raise NotFound()

    if job.is_expired(timedelta(minutes=settings.report_expiry_minutes)):
        _evict(job_id, store, dispatcher)
        raise Expired()

    if job.status != JobStatus.COMPLETED or not job.file_path:
        raise NotReady()

    filename = attachment_filename(job.name)
    return Response(
        content=render_csv(job.name),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# ---------------------------------------------------------------------------
# DELETE /report/{job_id}
# ---------------------------------------------------------------------------

@router.delete("/report/{job_id}", response_model=DeleteReportResponse, response_model_by_alias=True)
async def delete_report(
    job_id: str,
    store: JobStore = Depends(get_store),
    dispatcher: JobDispatcher = Depends(get_dispatcher),
):
    """Cancel any scheduled work for the job and remove it from the store."""
    dispatcher.cancel(job_id)
    job: Optional[JobRecord] = store.delete(job_id)
    if job is None:
        raise NotFound()
    logger.info("Job %s (%r) deleted by client", job_id, job.name)
    return DeleteReportResponse(job_id=job_id)
