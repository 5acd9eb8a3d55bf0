# backend/tests/conftest.py

"""
Shared fixtures: a fresh in-memory database per test, factories bound to
its session and a TestClient wired to the same session.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.auth import create_user_token
from core.database import Base, get_db
from core.notification_adapter import LoggingAdapter, get_notification_adapter
from tests.factories import base as factory_base


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own; let SQLAlchemy drive transactions so
    # SAVEPOINTs nest properly
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    factory_base.set_session(session)
    try:
        yield session
    finally:
        factory_base.set_session(None)
        session.close()


@pytest.fixture
def notifier():
    return LoggingAdapter()


@pytest.fixture
def client(db, notifier):
    """Test client for API requests, sharing the test session"""
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_adapter] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Build a bearer header for a user row."""

    def _headers(user):
        return {"Authorization": f"Bearer {create_user_token(user)}"}

    return _headers
