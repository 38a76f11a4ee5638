import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import ledger_sync.models  # noqa: F401
from ledger_sync.db import Base, get_db
from ledger_sync.main import app
from ledger_sync.services.rate_limit import build_rate_limiter
from ledger_sync.services.rpc_client import get_rpc_client

from ledger_fixtures import FakeLedger

ADMIN_SECRET = "test-admin-secret"


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def rpc(ledger):
    c = ledger.client()
    yield c
    c.close()


@pytest.fixture
def client(session_factory, ledger, monkeypatch):
    monkeypatch.setenv("ADMIN_SECRET", ADMIN_SECRET)
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    monkeypatch.delenv("PROGRAM_ID", raising=False)

    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    def _rpc():
        c = ledger.client()
        try:
            yield c
        finally:
            c.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_rpc_client] = _rpc
    app.state.rate_limiter = build_rate_limiter()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {ADMIN_SECRET}"}
