"""Tests for the FastAPI surface in connector_sync/main.py."""

from __future__ import annotations

import logging
from concurrent.futures import Future

import pytest
from fastapi.testclient import TestClient

from connector_sync.__version__ import __version__
from connector_sync.app_logging import LOGGER_NAME
from connector_sync.main import create_app


class _FakeScheduler:
    def __init__(self, in_flight: bool = False):
        self.in_flight = in_flight
        self.started = False
        self.stopped = False
        self.submitted: list[str] = []

    def start(self):
        self.started = True
        return True

    def stop(self, *, wait=False):
        self.stopped = True
        return True

    def submit(self, *, reason="manual"):
        self.submitted.append(reason)
        future: Future = Future()
        future.set_result({"success": True})
        return future

    @property
    def status(self):
        return {"running": self.started, "in_flight": self.in_flight, "run_count": 0}


@pytest.fixture
def scheduler(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    fake = _FakeScheduler()
    yield fake
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


@pytest.fixture
def client(scheduler):
    with TestClient(create_app(lambda: scheduler)) as test_client:
        yield test_client


def test_lifespan_starts_and_stops_scheduler(scheduler):
    with TestClient(create_app(lambda: scheduler)):
        assert scheduler.started
        assert not scheduler.stopped
    assert scheduler.stopped


def test_health(client):
    resp = client.get("/api/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_version(client):
    assert client.get("/api/version").json()["version"] == __version__


def test_status_reports_scheduler_state(client):
    data = client.get("/api/sync/status").json()

    assert data == {"running": True, "in_flight": False, "run_count": 0}


def test_manual_run_is_queued(client, scheduler):
    resp = client.post("/api/sync/run")

    assert resp.status_code == 202
    assert resp.json() == {"status": "queued"}
    assert scheduler.submitted == ["api"]


def test_manual_run_conflicts_while_in_flight(client, scheduler):
    scheduler.in_flight = True

    resp = client.post("/api/sync/run")

    assert resp.status_code == 409
    assert scheduler.submitted == []


def test_missing_settings_fail_startup(monkeypatch, tmp_path):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    for name in ("CONFIG_DATABASE_URL", "AZURE_SEARCH_ENDPOINT", "AZURE_SEARCH_API_KEY"):
        monkeypatch.setenv(name, "")
    monkeypatch.chdir(tmp_path)

    with pytest.raises(RuntimeError, match="missing required settings"):
        with TestClient(create_app()):
            pass

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
