"""Shared test fixtures."""

import os
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import unifi_presence.config as config_module
import unifi_presence.database as db_module
import unifi_presence.sensors.models  # noqa: F401
from unifi_presence.database import get_session
from unifi_presence.main import app


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep the developer's .env and UNIFI_PRESENCE_* variables out of tests."""
    monkeypatch.setattr(config_module, "_ENV_FILE", tmp_path / ".env")
    for key in list(os.environ):
        if key.startswith("UNIFI_PRESENCE_"):
            monkeypatch.delenv(key)


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created.

    StaticPool ensures every session uses the same connection,
    so the in-memory database is shared across the test.
    """
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as s:
        yield s


@pytest.fixture
def client(engine) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with overridden DB engine and session.

    Without UNIFI_PRESENCE_* configuration the lifespan leaves
    ``app.state.refresher`` unset; tests install their own.
    """
    original_engine = db_module.engine
    db_module.engine = engine

    def _override_session() -> Generator[Session, None, None]:
        with Session(engine) as s:
            yield s

    app.dependency_overrides[get_session] = _override_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
    app.state.refresher = None
    db_module.engine = original_engine
