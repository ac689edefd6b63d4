import asyncio

from reportgen.client.models import ClientJob, JobStatusView
from reportgen.client.panel import StatusPanel
from reportgen.client.storage import MemoryStorage
from reportgen.client.tracker import ReportJobTracker
from reportgen.jobs.models import JobStatus


class NullApi:
    async def cancel(self, job_id):
        return None


def make_panel(*jobs):
    tracker = ReportJobTracker(NullApi(), storage=MemoryStorage())
    tracker.jobs = list(jobs)
    tracker.show_download_section = bool(jobs)
    return StatusPanel(tracker)


def test_hidden_panel_renders_nothing():
    assert make_panel().render() == []


def test_collapsed_panel_shows_pending_count_only():
    panel = make_panel(
        ClientJob(id="1", name="Sales Report"),
        ClientJob(id="2", name="Inventory", status=JobStatusView(status=JobStatus.COMPLETED)),
    )
    assert panel.render() == ["Downloads (1) ^"]


def test_expanded_panel_lists_jobs():
    panel = make_panel(
        ClientJob(id="1", name="Sales Report"),
        ClientJob(id="2", name="Inventory", status=JobStatusView(status=JobStatus.FAILED, error="Connection error")),
    )
    panel.toggle()
    assert panel.render() == [
        "Downloads (1) v",
        "  [..] Sales Report - pending",
        "  [x] Inventory - failed (Connection error)",
        "  [cancel all]",
    ]


def test_remove_last_job_hides_panel():
    panel = make_panel(ClientJob(id="1", name="Sales Report"))
    asyncio.run(panel.remove("1"))
    assert panel.render() == []
