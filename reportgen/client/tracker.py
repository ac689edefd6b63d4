"""Client-side report job tracking.

Keeps the local job list, persists it after every change and follows one
status stream per pending job. The first ``completed`` frame for a job
triggers its download exactly once; a broken stream marks the job failed with
``Connection error`` and is never retried. Unreadable frames and callbacks
that raise never leave a job stuck in ``pending``.
"""

import asyncio
import inspect
import json
import logging
from contextlib import aclosing
from datetime import timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx
from pydantic import ValidationError as SchemaError

from reportgen.client.api import ReportApiError, TransportError
from reportgen.client.models import CONNECTION_ERROR, INVALID_FRAME, ClientJob, JobStatusView
from reportgen.client.storage import MemoryStorage
from reportgen.jobs.models import JobStatus

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "report_jobs"
DEFAULT_EXPIRY = timedelta(minutes=30)

JobCallback = Callable[[ClientJob], None]


class ReportJobTracker:
    def __init__(
        self,
        api,
        storage=None,
        storage_key: str = DEFAULT_STORAGE_KEY,
        expiry: timedelta = DEFAULT_EXPIRY,
        on_job_added: Optional[JobCallback] = None,
        on_job_completed: Optional[JobCallback] = None,
        on_job_failed: Optional[JobCallback] = None,
        on_change: Optional[Callable[[], None]] = None,
        download_action: Optional[Callable[[ClientJob, str], Any]] = None,
        download_dir: Path = Path("downloads"),
    ):
        """
        api: ReportApiClient or any object with the same generate /
            stream_status / download_url / save_download / cancel methods.
        storage: object with get_item(key) / set_item(key, value).
        download_action: callable(job, url), sync or async. Defaults to
            saving the CSV into download_dir.
        """
        self._api = api
        self._storage = storage if storage is not None else MemoryStorage()
        self._storage_key = storage_key
        self._expiry = expiry
        self._on_job_added = on_job_added
        self._on_job_completed = on_job_completed
        self._on_job_failed = on_job_failed
        self._on_change = on_change
        self._download_action = download_action
        self._download_dir = Path(download_dir)

        self._streams: Dict[str, asyncio.Task] = {}
        self._closing: set = set()

        self.jobs: List[ClientJob] = self._load()
        self.show_download_section = bool(self.jobs)
        self.is_status_open = False

    # -- persistence ---------------------------------------------------------

    def _load(self) -> List[ClientJob]:
        raw = self._storage.get_item(self._storage_key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring unreadable job list under %r", self._storage_key)
            return []

        jobs = []
        for item in items if isinstance(items, list) else []:
            try:
                job = ClientJob.model_validate(item)
            except SchemaError:
                logger.warning("Dropping malformed stored job: %r", item)
                continue
            if job.status.status == JobStatus.COMPLETED or job.is_expired(self._expiry):
                continue
            jobs.append(job)
        return jobs

    def _persist(self) -> None:
        payload = [job.model_dump(mode="json", by_alias=True) for job in self.jobs]
        self._storage.set_item(self._storage_key, json.dumps(payload))

    def _changed(self) -> None:
        self._persist()
        if self._on_change:
            self._on_change()

    # -- queries -------------------------------------------------------------

    def get_job(self, job_id: str) -> Optional[ClientJob]:
        index = self._index(job_id)
        return None if index is None else self.jobs[index]

    @property
    def pending_jobs(self) -> List[ClientJob]:
        return [job for job in self.jobs if job.status.status == JobStatus.PENDING]

    def has_stream(self, job_id: str) -> bool:
        return job_id in self._streams

    def _index(self, job_id: str) -> Optional[int]:
        for index, job in enumerate(self.jobs):
            if job.id == job_id:
                return index
        return None

    # -- panel state ---------------------------------------------------------

    def set_status_open(self, is_open: bool) -> None:
        self.is_status_open = is_open
        if self._on_change:
            self._on_change()

    def toggle_status(self) -> None:
        self.set_status_open(not self.is_status_open)

    # -- actions -------------------------------------------------------------

    async def generate_report(self, name: str, simulate_failure: bool = False) -> ClientJob:
        job_id = await self._api.generate(name, simulate_failure=simulate_failure)
        job = ClientJob(id=job_id, name=name)
        self.jobs.append(job)
        self.show_download_section = True
        self.is_status_open = True
        self._changed()
        self._notify(self._on_job_added, job)
        self.sync_streams()
        return job

    def sync_streams(self) -> None:
        """Open a status stream for every pending job that has none."""
        for job in self.pending_jobs:
            if job.id not in self._streams:
                self._streams[job.id] = asyncio.create_task(self._follow(job.id))

    async def remove_job(self, job_id: str) -> None:
        index = self._index(job_id)
        job = self.jobs.pop(index) if index is not None else None
        self._close_stream(job_id)
        if not self.jobs:
            self.show_download_section = False
        self._changed()
        if job is not None and not job.status.is_terminal:
            await self._cancel_remote(job_id)

    async def cancel_all(self) -> None:
        dropped = [job for job in self.jobs if job.status.status != JobStatus.COMPLETED]
        self.jobs = [job for job in self.jobs if job.status.status == JobStatus.COMPLETED]
        for job_id in list(self._streams):
            self._close_stream(job_id)
        self.show_download_section = False
        self._changed()
        for job in dropped:
            if not job.status.is_terminal:
                await self._cancel_remote(job.id)

    async def wait_idle(self) -> None:
        """Wait until every open status stream has finished."""
        while self._streams:
            await asyncio.gather(*list(self._streams.values()), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._streams.values()) + list(self._closing)
        self._streams.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._closing.clear()

    async def __aenter__(self) -> "ReportJobTracker":
        self.sync_streams()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -- stream handling -----------------------------------------------------

    async def _follow(self, job_id: str) -> None:
        try:
            async with aclosing(self._api.stream_status(job_id)) as frames:
                async for frame in frames:
                    if await self._apply(job_id, JobStatusView.from_frame(frame)):
                        return
            raise TransportError("Status stream closed before the report finished")
        except TransportError as exc:
            logger.warning("Status stream for job %s failed: %s", job_id, exc)
            self._mark_failed(job_id, CONNECTION_ERROR)
        except SchemaError as exc:
            logger.warning("Unreadable status frame for job %s: %s", job_id, exc)
            self._mark_failed(job_id, INVALID_FRAME)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Status stream for job %s crashed", job_id)
            self._mark_failed(job_id, INVALID_FRAME)
        finally:
            if self._streams.get(job_id) is asyncio.current_task():
                del self._streams[job_id]

    async def _apply(self, job_id: str, view: JobStatusView) -> bool:
        """Merge one frame into local state. Returns True when the stream is done."""
        index = self._index(job_id)
        if index is None:
            return True

        job = self.jobs[index]
        first_completion = view.status == JobStatus.COMPLETED and not job.downloaded
        updated = job.model_copy(update={"status": view, "downloaded": job.downloaded or first_completion})
        self.jobs[index] = updated
        self._changed()

        if first_completion:
            await self._run_download(updated)
            self._notify(self._on_job_completed, updated)
        elif view.status == JobStatus.FAILED:
            self._notify(self._on_job_failed, updated)

        return view.is_terminal

    def _mark_failed(self, job_id: str, error: str) -> None:
        index = self._index(job_id)
        if index is None or self.jobs[index].status.is_terminal:
            return
        failed = self.jobs[index].model_copy(
            update={"status": JobStatusView(status=JobStatus.FAILED, error=error)}
        )
        self.jobs[index] = failed
        self._changed()
        self._notify(self._on_job_failed, failed)

    def _notify(self, callback: Optional[JobCallback], job: ClientJob) -> None:
        if callback is None:
            return
        try:
            callback(job)
        except Exception:
            logger.exception("Callback %r raised for report %s", callback, job.id)

    async def _run_download(self, job: ClientJob) -> None:
        url = self._api.download_url(job.id)
        try:
            if self._download_action is None:
                await self._api.save_download(job.id, self._download_dir)
                return
            result = self._download_action(job, url)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Download of report %s from %s failed", job.id, url)

    def _close_stream(self, job_id: str) -> None:
        task = self._streams.pop(job_id, None)
        if task is None or task.done():
            return
        task.cancel()
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    async def _cancel_remote(self, job_id: str) -> None:
        try:
            await self._api.cancel(job_id)
        except (ReportApiError, httpx.HTTPError) as exc:
            logger.warning("Could not cancel report %s on the server: %s", job_id, exc)
