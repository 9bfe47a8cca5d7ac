from __future__ import annotations

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from accessgate.core.config import Settings
from accessgate.db.database import create_db_engine, init_models, make_session_factory
from accessgate.main import create_app
from accessgate.repositories.access_code_repo import SqlCodeStore
from accessgate.repositories.usage_log_repo import SqlUsageLogSink
from accessgate.services.container import build_services
from tests.fakes import FakeClock, MemoryCodeStore, MemoryLogSink

ADMIN_TOKEN = "test-admin-token-123"
START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(START)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ADMIN_TOKEN=ADMIN_TOKEN,
        DB_URL="sqlite://",
        CLEANUP_INTERVAL_SECONDS=0,
        LOG_LEVEL="WARNING",
    )


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite://")
    init_models(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sql_backend(engine):
    session_factory = make_session_factory(engine)
    store = SqlCodeStore(session_factory, engine)
    store.refresh_capabilities()
    return store, SqlUsageLogSink(session_factory)


@pytest.fixture
def memory_backend():
    return MemoryCodeStore(), MemoryLogSink()


@pytest.fixture(params=["sql", "memory"])
def backend(request):
    return request.getfixturevalue(f"{request.param}_backend")


@pytest.fixture
def store(backend):
    return backend[0]


@pytest.fixture
def sink(backend):
    return backend[1]


@pytest.fixture
def services(store, sink, settings, clock):
    return build_services(store, sink, settings, clock=clock)


@pytest.fixture
def client(sql_backend, settings, clock):
    store, sink = sql_backend
    app = create_app(settings, store=store, sink=sink, clock=clock)
    return TestClient(app)


@pytest.fixture
def admin_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
