"""Generate reports from the command line and follow them to download.

    python -m reportgen.client "Sales Report" "Inventory Report"
"""

import argparse
import asyncio
import logging
from pathlib import Path

import httpx

from reportgen.client.api import ReportApiClient, ReportApiConfig, ReportApiError
from reportgen.client.panel import StatusPanel
from reportgen.client.storage import JsonFileStorage
from reportgen.client.tracker import ReportJobTracker
from reportgen.logging_config import configure_logging

logger = logging.getLogger("reportgen.client")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate reports and download them when ready.")
    parser.add_argument("names", nargs="*", help="Report names to generate")
    parser.add_argument("--base-url", default=ReportApiConfig().base_url)
    parser.add_argument("--download-dir", type=Path, default=Path("downloads"))
    parser.add_argument("--state-file", type=Path, default=Path(".report_jobs.json"))
    parser.add_argument("--fail", action="store_true", help="Ask the server to fail the generated reports")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    api = ReportApiClient(ReportApiConfig(base_url=args.base_url))
    panel = None

    def redraw() -> None:
        if panel is not None:
            print("\n".join(panel.render()))

    tracker = ReportJobTracker(
        api,
        storage=JsonFileStorage(args.state_file),
        on_change=redraw,
        on_job_completed=lambda job: logger.info("Report %r downloaded", job.name),
        on_job_failed=lambda job: logger.warning("Report %r failed: %s", job.name, job.status.error),
        download_dir=args.download_dir,
    )
    panel = StatusPanel(tracker)

    try:
        async with tracker:
            for name in args.names:
                try:
                    await tracker.generate_report(name, simulate_failure=args.fail)
                except ReportApiError as exc:
                    logger.error("Could not start report %r: %s", name, exc.message)
                except httpx.HTTPError as exc:
                    logger.error("Could not reach the report service: %s", exc)
                    break
            await tracker.wait_idle()
    finally:
        await api.aclose()

    failed = [job for job in tracker.jobs if job.status.error]
    return 1 if failed else 0


def main(argv=None) -> int:
    configure_logging()
    return asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
