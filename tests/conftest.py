import json

import pytest

from reportgen.config import Settings


def make_settings(**overrides) -> Settings:
    """Settings with delays short enough for tests."""
    values = {
        "report_delay_seconds": 0.05,
        "sales_report_delay_seconds": 0.1,
        "status_heartbeat_seconds": 5.0,
        "cleanup_interval_seconds": 3600.0,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def fast_settings():
    return make_settings()


@pytest.fixture
def slow_settings():
    """Completion far enough away that jobs stay pending for the whole test."""
    return make_settings(report_delay_seconds=60.0, sales_report_delay_seconds=60.0)


def _read_frames(client, job_id, prefix="/api"):
    with client.stream("GET", f"{prefix}/report-status/{job_id}") as resp:
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        return [
            json.loads(line[len("data:"):])
            for line in resp.iter_lines()
            if line.startswith("data:")
        ]


@pytest.fixture
def read_frames():
    """Consume a status stream and return the decoded data frames."""
    return _read_frames


@pytest.fixture
def settings_factory():
    return make_settings
