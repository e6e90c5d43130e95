"""
Shared fixtures: the app runs against in-memory SQLite and fakeredis.

Cache population happens on the app's CacheTaskQueue; tests that look at
Redis call ``drain(app)`` first.
"""

from datetime import datetime, timedelta, timezone

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from auth.constants import ValidRoles
from auth.schemas import User
from common.config import Settings, get_settings
from common.database import get_db, get_redis_connection, init_db
from main import create_app

PASSWORD = "s3cret-pass"


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite://",
        secret_key="test-secret",
        qr_size=128,
        cache_write_interval=0,
        cache_workers=1,
        cache_queue_size=64,
        log_level="DEBUG",
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def app(settings, session_factory, redis_client):
    app = create_app(settings, bootstrap_db=False)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis_connection] = lambda: redis_client
    app.dependency_overrides[get_settings] = lambda: settings
    yield app


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which owns the cache queue.
    with TestClient(app) as client:
        yield client


def drain(app) -> None:
    assert app.state.cache_queue.wait(timeout=10), "cache tasks did not finish"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def register(client, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/auth/register", json={"email": email, "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def login(client, email: str, password: str = PASSWORD) -> dict:
    resp = client.post("/api/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def iso(moment: datetime) -> str:
    return moment.isoformat()


def event_body(name="Concert", start_offset=timedelta(hours=-1), end_offset=timedelta(hours=1)):
    now = datetime.now(timezone.utc)
    return {
        "name": name,
        "location": "Main Hall",
        "date": iso(now + start_offset),
        "endDate": iso(now + end_offset),
    }


@pytest.fixture
def attendee(client):
    data = register(client, "attendee@example.com")
    return {"id": data["user"]["id"], "token": data["token"], "headers": bearer(data["token"])}


@pytest.fixture
def manager(client, db_session):
    data = register(client, "manager@example.com")
    user_id = data["user"]["id"]
    db_session.query(User).filter(User.id == user_id).update({"role": ValidRoles.MANAGER})
    db_session.commit()
    token = login(client, "manager@example.com")["token"]
    return {"id": user_id, "token": token, "headers": bearer(token)}


@pytest.fixture
def create_event(client, attendee):
    def _create(headers=None, **overrides):
        resp = client.post(
            "/api/event", json=event_body(**overrides), headers=headers or attendee["headers"]
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create
