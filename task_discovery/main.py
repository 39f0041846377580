"""Task Discovery FastAPI application.

Creates the service, wires routes, configures logging, starts one TaskMonitor
per configured service and exposes health and Prometheus metrics endpoints.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request

from task_discovery.api.routes import router
from task_discovery.core.config import Settings, load_settings
from task_discovery.core.logging import get_logger, setup_logging
from task_discovery.metrics.prometheus import metrics_router
from task_discovery.models.schemas import TaskInfo
from task_discovery.services.clients import Boto3ComputeClient, Boto3OrchestratorClient
from task_discovery.services.finder import TaskFinder
from task_discovery.services.monitor import TaskMonitor

log = get_logger("main")


def build_monitor(finder: TaskFinder, service: str, settings: Settings) -> TaskMonitor:
    """Create a monitor for ``service`` that logs every change and error."""
    tm = TaskMonitor(
        finder,
        service,
        poll_interval_s=settings.poll_interval_s,
        volatile_poll_interval_s=settings.volatile_poll_interval_s,
        resolve_timeout_s=settings.resolve_timeout_s,
    )

    def on_task_change(tasks: list[TaskInfo]) -> None:
        log.info("available tasks for %s:", service)
        for t in tasks:
            log.info("   %s", t)

    def on_status_change(tasks: list[TaskInfo]) -> None:
        log.info("status changed for %s:", service)
        for t in tasks:
            log.info("   %s", t)

    def on_error(err: Exception) -> None:
        log.error("error detected for %s: %s", service, err)

    tm.on_task_change = on_task_change
    tm.on_status_change = on_status_change
    tm.on_error = on_error
    return tm


def create_app(settings: Optional[Settings] = None, finder: Optional[TaskFinder] = None) -> FastAPI:
    """Build the application. A prebuilt ``finder`` skips creating AWS clients."""
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan.

        Initializes logging, the app-scoped TaskFinder and the monitors, and
        cancels the monitors on shutdown.
        """
        setup_logging()
        if app.state.finder is None:
            app.state.finder = TaskFinder(
                Boto3OrchestratorClient.from_settings(settings),
                Boto3ComputeClient.from_settings(settings),
                settings.cluster,
            )
        handles = []
        try:
            for service in settings.services:
                tm = build_monitor(app.state.finder, service, settings)
                app.state.monitors[service] = tm
                handles.append(await tm.monitor())
                log.info("monitoring %s on cluster %s", service, settings.cluster)
            yield
        finally:
            for h in handles:
                h.cancel()
            for h in handles:
                await h.wait()

    app = FastAPI(title="Task Discovery", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.finder = finder
    app.state.monitors = {}
    app.include_router(router, prefix="/registry", tags=["registry"])
    app.include_router(metrics_router)

    @app.get("/health")
    async def health(request: Request):
        """Health endpoint listing the monitored services."""
        return {
            "status": "ok",
            "cluster": settings.cluster,
            "monitored": sorted(request.app.state.monitors),
        }

    return app


def run() -> None:
    """Serve the application with uvicorn."""
    settings = load_settings()
    uvicorn.run(create_app(settings), host=settings.bind_host, port=settings.bind_port)
