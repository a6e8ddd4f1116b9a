"""FastAPI application exposing the sync scheduler.

The scheduler starts with the application and stops on shutdown. Routes:

- ``GET /api/health`` liveness probe.
- ``GET /api/version`` build metadata.
- ``GET /api/sync/status`` scheduler counters and the last run report.
- ``POST /api/sync/run`` queue a pass now; 409 while one is in flight.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .config import SyncSettings
from .sync.runner import SyncScheduler, build_sync_job

logger = logging.getLogger(__name__)

SchedulerFactory = Callable[[], SyncScheduler]


def scheduler_from_env() -> SyncScheduler:
    settings = SyncSettings.from_env()
    missing = settings.missing()
    if missing:
        raise RuntimeError("missing required settings: " + ", ".join(missing))
    return SyncScheduler(
        build_sync_job(settings),
        interval_seconds=settings.interval_seconds,
        run_on_start=settings.run_on_start,
    )


def create_app(scheduler_factory: SchedulerFactory | None = None) -> FastAPI:
    factory = scheduler_factory or scheduler_from_env

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        init_logging()
        scheduler = factory()
        app.state.scheduler = scheduler
        scheduler.start()
        try:
            yield
        finally:
            scheduler.stop()

    app = FastAPI(title="Connector Sync", version=__version__, lifespan=lifespan)

    @app.get("/api/health")
    async def health():
        """Liveness/readiness probe with a minimal JSON body."""
        return {"status": "ok"}

    @app.get("/api/version")
    async def version():
        return {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }

    @app.get("/api/sync/status")
    async def sync_status(request: Request):
        return request.app.state.scheduler.status

    @app.post("/api/sync/run", status_code=202)
    async def sync_run(request: Request):
        """Queue an immediate pass on the scheduler's worker pool."""
        scheduler: SyncScheduler = request.app.state.scheduler
        if scheduler.in_flight:
            raise HTTPException(status_code=409, detail="a sync run is already in progress")
        scheduler.submit(reason="api")
        logger.info("manual sync run queued")
        return {"status": "queued"}

    return app


app = create_app()
