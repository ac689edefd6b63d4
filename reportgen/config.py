"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    app_name: str = "Report Generation Service"
    app_version: str = "0.1.0"

    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    api_prefix: str = "/api"
    allow_origins: List[str] = ["*"]
    log_level: str = "INFO"

    # Report generation
    report_delay_seconds: float = 5.0
    sales_report_delay_seconds: float = 8.0
    reports_dir: str = "/reports"

    # Job retention
    report_expiry_minutes: float = 30
    status_heartbeat_seconds: float = 50.0
    cleanup_interval_seconds: float = 60.0

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
