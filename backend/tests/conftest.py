"""Pytest configuration and shared fixtures."""

import os
import uuid
from collections.abc import Generator

# Settings are read at import time; configure the environment first
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["REMOTE_CONFIG_URL"] = ""
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-quizsync-tests-only")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

import quizsync.models  # noqa: F401
from quizsync.core.dependencies import get_remote_config_provider
from quizsync.core.security import create_access_token
from quizsync.db.base import Base
from quizsync.db.engine import create_db_engine
from quizsync.db.session import get_db
from quizsync.main import app
from quizsync.services.remote_config import RemoteConfigProvider, RemoteConfigSnapshot
from quizsync.sync.store import RecordStore


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database per test."""
    test_engine = create_db_engine("sqlite://")

    @event.listens_for(test_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-redef]
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine: Engine) -> Generator[Session, None, None]:
    session = Session(bind=engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store(db: Session) -> RecordStore:
    return RecordStore(db)


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def remote_config() -> RemoteConfigProvider:
    """Flags served from defaults; no network."""
    return RemoteConfigProvider(url=None, defaults=RemoteConfigSnapshot(source="test"))


@pytest.fixture
def client(db: Session, remote_config: RemoteConfigProvider) -> Generator[TestClient, None, None]:
    """FastAPI test client with database and remote config overrides."""

    def override_get_db():
        try:
            yield db
        finally:
            pass  # Session is owned by the db fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_remote_config_provider] = lambda: remote_config
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(owner_id: uuid.UUID) -> dict[str, str]:
    """Authorization header for the test owner."""
    token = create_access_token(user_id=str(owner_id))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_auth_headers(other_owner_id: uuid.UUID) -> dict[str, str]:
    token = create_access_token(user_id=str(other_owner_id))
    return {"Authorization": f"Bearer {token}"}
