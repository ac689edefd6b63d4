"""Text rendering of the tracker's job list."""

from typing import List

from reportgen.client.tracker import ReportJobTracker
from reportgen.jobs.models import JobStatus

_MARKERS = {
    JobStatus.PENDING: "[..]",
    JobStatus.COMPLETED: "[ok]",
    JobStatus.FAILED: "[x]",
}


class StatusPanel:
    """Renders the download panel; all state lives in the tracker."""

    def __init__(self, tracker: ReportJobTracker):
        self.tracker = tracker

    def render(self) -> List[str]:
        tracker = self.tracker
        if not tracker.show_download_section:
            return []

        arrow = "v" if tracker.is_status_open else "^"
        lines = [f"Downloads ({len(tracker.pending_jobs)}) {arrow}"]
        if not tracker.is_status_open:
            return lines

        for job in tracker.jobs:
            line = f"  {_MARKERS[job.status.status]} {job.name} - {job.status.status.value}"
            if job.status.error:
                line += f" ({job.status.error})"
            lines.append(line)
        if tracker.jobs:
            lines.append("  [cancel all]")
        return lines

    def toggle(self) -> None:
        self.tracker.toggle_status()

    async def remove(self, job_id: str) -> None:
        await self.tracker.remove_job(job_id)

    async def cancel_all(self) -> None:
        await self.tracker.cancel_all()
