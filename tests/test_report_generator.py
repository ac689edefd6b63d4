import pytest

from reportgen.jobs.models import JobRecord
from reportgen.reports.generator import (
    ReportGenerationError,
    attachment_filename,
    completion_delay,
    generate_report,
    render_csv,
    slugify,
)


def test_slugify_collapses_whitespace():
    assert slugify("Sales Report") == "sales-report"
    assert slugify("Q3  Inventory\tSummary") == "q3-inventory-summary"


def test_completion_delay_depends_on_name(fast_settings):
    assert completion_delay("Monthly SALES", fast_settings) == fast_settings.sales_report_delay_seconds
    assert completion_delay("Inventory", fast_settings) == fast_settings.report_delay_seconds


def test_generate_report_returns_file_path():
    job = JobRecord(name="Sales Report")
    assert generate_report(job, "/reports/") == f"/reports/sales-report-{job.id}.csv"


def test_generate_report_simulated_failure():
    job = JobRecord(name="Sales Report", simulate_failure=True)
    with pytest.raises(ReportGenerationError):
        generate_report(job)


def test_render_csv_variants():
    sales = render_csv("Sales Report")
    other = render_csv("Inventory")
    assert sales.splitlines() == [
        "id,name,value",
        "1,Product A,1000",
        "2,Product B,2000",
        "3,Product C,3000",
    ]
    assert other.startswith("id,name,value\n1,Item X,50")


def test_attachment_filename():
    assert attachment_filename("Sales Report") == "sales-report.csv"
