from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from owntracks_recorder import config, db
from owntracks_recorder.main import app
from owntracks_recorder.services.index_store import MemoryIndexStore
from owntracks_recorder.services.object_store import MemoryObjectStore


def make_report(user: str = "alice", device: str = "phone", tst: int | None = 1710504000, **extra) -> dict:
    report = {"_type": "location", "lat": 52.3702, "lon": 4.8952, "topic": f"owntracks/{user}/{device}"}
    if tst is not None:
        report["tst"] = tst
    report.update(extra)
    return report


@pytest.fixture
def object_store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def index_store() -> MemoryIndexStore:
    return MemoryIndexStore()


@pytest.fixture
def client(object_store, index_store, monkeypatch):
    monkeypatch.setattr(config, "BASIC_AUTH_USER", None)
    monkeypatch.setattr(config, "BASIC_AUTH_PASS", None)
    app.dependency_overrides[db.get_object_store] = lambda: object_store
    app.dependency_overrides[db.get_index_store] = lambda: index_store
    yield TestClient(app)
    app.dependency_overrides.clear()
