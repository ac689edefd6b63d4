"""Stub report generation: artifact paths and CSV content."""

import re

from reportgen.config import Settings
from reportgen.jobs.models import JobRecord

CSV_HEADER = "id,name,value\n"

_SALES_ROWS = "1,Product A,1000\n2,Product B,2000\n3,Product C,3000"
_DEFAULT_ROWS = "1,Item X,50\n2,Item Y,75\n3,Item Z,100"


class ReportGenerationError(RuntimeError):
    pass


def is_sales_report(name: str) -> bool:
    return "sales" in name.lower()


def slugify(name: str) -> str:
    return re.sub(r"\s+", "-", name.lower())


def completion_delay(name: str, settings: Settings) -> float:
    """Sales reports take longer; everything else uses the default delay."""
    if is_sales_report(name):
        return settings.sales_report_delay_seconds
    return settings.report_delay_seconds


def generate_report(job: JobRecord, reports_dir: str = "/reports") -> str:
    """Worker: produce the artifact reference for a job.

    Raises ReportGenerationError for jobs submitted with simulate_failure.
    """
    if job.simulate_failure:
        raise ReportGenerationError(f"Simulated failure for report {job.name!r}")
    return f"{reports_dir.rstrip('/')}/{slugify(job.name)}-{job.id}.csv"


def render_csv(name: str) -> str:
    rows = _SALES_ROWS if is_sales_report(name) else _DEFAULT_ROWS
    return CSV_HEADER + rows


def attachment_filename(name: str) -> str:
    return f"{slugify(name)}.csv"
