"""
Pytest fixtures for lovebrain tests. Uses a temporary SQLite population DB.
"""

from __future__ import annotations

import threading

import pytest

from lovebrain.core.constants import DIMENSIONS
from lovebrain.core.exceptions import StoreQueryFailure
from lovebrain.database import PopulationRecord, PopulationStore, SQLPopulationStore

ACCESS_CODE = "LOVE-2024"


def uniform_record(value: float) -> PopulationRecord:
    """Record with the same score on every dimension."""
    return PopulationRecord.from_scores({dim: value for dim in DIMENSIONS})


class FakeStore(PopulationStore):
    """
    In-memory store with fixed counts per dimension. Records every call.
    fail_on: dimension whose query raises StoreQueryFailure.
    block_on: dimension whose query waits on `release` (simulates a stalled query).
    """

    def __init__(self, counts=None, fail_on=None, block_on=None, total=1000):
        self.counts = counts or {dim: 500 for dim in DIMENSIONS}
        self.fail_on = fail_on
        self.block_on = block_on
        self.total = total
        self.release = threading.Event()
        self.calls: list[tuple[str, float]] = []
        self._lock = threading.Lock()

    def count_below(self, dimension, value):
        with self._lock:
            self.calls.append((dimension, value))
        if dimension == self.fail_on:
            raise StoreQueryFailure("connection reset", dimension=dimension)
        if dimension == self.block_on:
            self.release.wait(5.0)
        return self.counts[dimension]

    def count_records(self):
        return self.total


@pytest.fixture
def population_url(tmp_path):
    return f"sqlite:///{tmp_path / 'population.db'}"


@pytest.fixture
def population_db(population_url):
    """Empty SQLPopulationStore on a temporary SQLite file."""
    store = SQLPopulationStore(population_url)
    store.ensure_schema()
    yield store
    store.close()


@pytest.fixture
def api_env(tmp_path, monkeypatch):
    """Point the API at a temporary SQLite DB with an access code configured."""
    db_path = tmp_path / "api_population.db"
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_PATH", str(db_path))
    monkeypatch.setenv("ACCESS_CODE", ACCESS_CODE)
    monkeypatch.setenv("TOTAL_SIMULATIONS", "1000")
    monkeypatch.setenv("APP_ENV", "test")
    store = SQLPopulationStore(f"sqlite:///{db_path}")
    store.ensure_schema()
    yield store
    store.close()


@pytest.fixture
def client(api_env):
    """FastAPI TestClient with lifespan run, so the store is opened from api_env."""
    from fastapi.testclient import TestClient

    from lovebrain.api_server.server import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def offline_client(monkeypatch):
    """TestClient with no database configured (estimated rankings only)."""
    from fastapi.testclient import TestClient

    from lovebrain.api_server.server import app

    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_PATH", raising=False)
    monkeypatch.delenv("ACCESS_CODE", raising=False)
    with TestClient(app) as test_client:
        yield test_client
