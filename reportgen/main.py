"""Report Generation Service - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from reportgen.config import Settings, settings as default_settings
from reportgen.api.v1.router import build_api_router, health_root_router
from reportgen.errors import register_exception_handlers
from reportgen.jobs.deferred import DeferredCompletionDispatcher
from reportgen.jobs.store import InMemoryJobStore, JobStore
from reportgen.logging_config import configure_logging
from reportgen.reports.generator import completion_delay, generate_report

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    settings: Settings = app.state.settings
    dispatcher: DeferredCompletionDispatcher = app.state.dispatcher

    logger.info("Starting %s v%s on port %s", settings.app_name, settings.app_version, settings.port)
    logger.info("Report expiry: %s minutes", settings.report_expiry_minutes)
    logger.info(
        "Completion delay: %.1fs (sales: %.1fs)",
        settings.report_delay_seconds,
        settings.sales_report_delay_seconds,
    )

    await dispatcher.start()
    logger.info("Job dispatcher started")

    yield

    logger.info("Shutting down %s", settings.app_name)
    await dispatcher.stop()


def create_app(settings: Optional[Settings] = None, store: Optional[JobStore] = None) -> FastAPI:
    """Build the application with one store and one dispatcher per process."""
    settings = settings or default_settings
    configure_logging(settings)

    store = store if store is not None else InMemoryJobStore()
    dispatcher = DeferredCompletionDispatcher(
        store=store,
        worker_fn=lambda job: generate_report(job, settings.reports_dir),
        delay_fn=lambda job: completion_delay(job.name, settings),
        expiry=timedelta(minutes=settings.report_expiry_minutes),
        cleanup_interval=settings.cleanup_interval_seconds,
    )

    app = FastAPI(
        title=settings.app_name,
        description="Asynchronous report generation with live status streams",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.dispatcher = dispatcher

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allow_origins,
        allow_credentials="*" not in settings.allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    register_exception_handlers(app)

    # Mount routers
    app.include_router(health_root_router)
    app.include_router(build_api_router(settings.api_prefix))
    return app


app = create_app()
