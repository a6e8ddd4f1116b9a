"""Fixed-interval scheduler for sync passes with an overlap guard."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone
from threading import Event, Lock, Thread
from typing import Any

from ..config import SyncSettings
from .archive import BlobArchive
from .classifier import RecordClassifier
from .connectors.mongo import MongoSource
from .extraction import BlobExtractor
from .models import ConnectorDefinition, SyncRunReport
from .search import SearchSink
from .service import SyncOrchestrator
from .storage import ConnectorRegistry

SyncJob = Callable[[], SyncRunReport]


class SyncScheduler:
    """Invoke a sync job every ``interval_seconds`` on a background thread.

    Ticks are aligned to the start time rather than to the end of the previous
    run. A tick that fires while a run is still in flight is skipped and
    logged; a run that raises is logged and the next tick still fires.
    """

    def __init__(
        self,
        job: SyncJob,
        *,
        interval_seconds: float,
        run_on_start: bool = False,
        max_workers: int = 2,
        clock: Callable[[], float] = time.monotonic,
        logger: logging.Logger | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._job = job
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self._clock = clock
        self.logger = logger or logging.getLogger(__name__)
        self._max_workers = max_workers
        self.executor = self._new_executor()
        self._executor_closed = False
        self._run_lock = Lock()
        self._counter_lock = Lock()
        self._stop_event = Event()
        self._thread: Thread | None = None

        self._run_count = 0
        self._success_count = 0
        self._failure_count = 0
        self._skipped_count = 0
        self._last_run_started_at: datetime | None = None
        self._last_run_finished_at: datetime | None = None
        self._last_error: str | None = None
        self._last_report: SyncRunReport | None = None

    # ------------------------------------------------------------------
    # Runs
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def in_flight(self) -> bool:
        return self._run_lock.locked()

    def trigger_once(self, *, reason: str = "manual") -> dict[str, Any]:
        """Run the job now unless another run holds the guard."""

        if not self._run_lock.acquire(blocking=False):
            with self._counter_lock:
                self._skipped_count += 1
            self.logger.warning("sync run (%s) skipped: previous run still in progress", reason)
            return {"success": False, "reason": "already_running"}

        try:
            self._run_count += 1
            run_id = self._run_count
            self._last_run_started_at = datetime.now(timezone.utc)
            self._last_error = None
            self.logger.info("sync run #%d started (%s)", run_id, reason)
            try:
                report = self._job()
            except Exception as exc:
                self._failure_count += 1
                self._last_error = str(exc)
                self.logger.exception("sync run #%d failed", run_id)
                return {"success": False, "reason": reason, "run_id": run_id, "error": str(exc)}

            self._success_count += 1
            self._last_report = report
            self.logger.info("sync run #%d completed (%s)", run_id, reason)
            return {
                "success": True,
                "reason": reason,
                "run_id": run_id,
                "report": report.to_json(),
            }
        finally:
            self._last_run_finished_at = datetime.now(timezone.utc)
            self._run_lock.release()

    def submit(self, *, reason: str = "manual") -> Future:
        """Queue a run on the worker pool and return its future."""

        return self.executor.submit(self.trigger_once, reason=reason)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def _tick_loop(self) -> None:
        next_tick = self._clock() + (0.0 if self.run_on_start else self.interval_seconds)
        while not self._stop_event.wait(max(0.0, next_tick - self._clock())):
            self.submit(reason="scheduled")
            next_tick += self.interval_seconds
            now = self._clock()
            if next_tick <= now:
                missed = int((now - next_tick) // self.interval_seconds) + 1
                self.logger.warning("scheduler fell behind; dropping %d tick(s)", missed)
                next_tick += missed * self.interval_seconds

    def _new_executor(self) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(
            max_workers=self._max_workers, thread_name_prefix="sync-run"
        )

    def start(self) -> bool:
        if self.running:
            return False
        if self._executor_closed:
            self.executor = self._new_executor()
            self._executor_closed = False
        self._stop_event.clear()
        self._thread = Thread(target=self._tick_loop, name="sync-scheduler", daemon=True)
        self._thread.start()
        self.logger.info("sync scheduler started (interval=%.1fs)", self.interval_seconds)
        return True

    def stop(self, *, wait: bool = False) -> bool:
        if self._thread is None:
            return False
        self._stop_event.set()
        self._thread.join(timeout=5)
        self._thread = None
        self.executor.shutdown(wait=wait, cancel_futures=True)
        self._executor_closed = True
        self.logger.info("sync scheduler stopped")
        return True

    def wait(self) -> None:
        """Block until :meth:`stop` is called from another thread or a signal."""

        while self.running:
            self._stop_event.wait(1.0)

    @property
    def status(self) -> dict[str, Any]:
        return {
            "interval_seconds": self.interval_seconds,
            "running": self.running,
            "in_flight": self.in_flight,
            "run_count": self._run_count,
            "success_count": self._success_count,
            "failure_count": self._failure_count,
            "skipped_count": self._skipped_count,
            "last_run_started_at": self._last_run_started_at,
            "last_run_finished_at": self._last_run_finished_at,
            "last_error": self._last_error,
            "last_report": self._last_report.to_json() if self._last_report else None,
        }


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_orchestrator(
    settings: SyncSettings,
    registry: ConnectorRegistry,
    *,
    logger: logging.Logger | None = None,
) -> SyncOrchestrator:
    """Create the orchestrator and its collaborators from settings."""

    archive = None
    if settings.blob_container_url:
        archive = BlobArchive(
            settings.blob_container_url,
            settings.blob_sas_token,
            timeout=settings.http_timeout_seconds,
        )
    classifier = RecordClassifier(
        blob_extractor=BlobExtractor(use_ocr=settings.enable_ocr, ocr_lang=settings.ocr_lang),
        archive=archive,
    )
    sink = SearchSink(
        settings.search_endpoint,
        settings.search_api_key,
        api_version=settings.search_api_version,
        timeout=settings.http_timeout_seconds,
    )
    def _source(connector: ConnectorDefinition) -> MongoSource:
        return MongoSource(connector, timeout_ms=settings.mongo_timeout_ms)

    return SyncOrchestrator(
        sink=sink,
        watermarks=registry,
        classifier=classifier,
        source_factory=_source,
        max_chunk_size=settings.max_chunk_size,
        max_batch_size=settings.max_batch_size,
        index_prefix=settings.index_prefix,
        connector_timeout=settings.connector_timeout_seconds,
        logger=logger,
    )


def build_sync_job(
    settings: SyncSettings,
    *,
    registry: ConnectorRegistry | None = None,
    orchestrator: SyncOrchestrator | None = None,
    logger: logging.Logger | None = None,
) -> SyncJob:
    """Bind the definition listing and the orchestrator into one callable."""

    if registry is None:
        registry = ConnectorRegistry(
            settings.config_database_url, prefix=settings.connector_name_prefix
        )
    if orchestrator is None:
        orchestrator = build_orchestrator(settings, registry, logger=logger)

    def _job() -> SyncRunReport:
        connectors = registry.list_definitions()
        orchestrator.logger.info("found %d connector definition(s)", len(connectors))
        return orchestrator.run(connectors)

    return _job


__all__ = ["SyncScheduler", "build_orchestrator", "build_sync_job"]
