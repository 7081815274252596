"""Test configuration and fixtures."""

from typing import Generator

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from incident_engine.api import app
from incident_engine.cache import CacheCoordinator
from incident_engine.db.base import build_engine, drop_database, get_db, init_database
from incident_engine.dependencies import get_cache
from incident_engine.rate_limit import limiter
from incident_engine.services.incidents import IncidentMutationEngine
from incident_engine.services.users import UserService


@pytest.fixture
def db_engine():
    """Fresh in-memory SQLite database per test."""
    engine = build_engine("sqlite:///:memory:")
    init_database(engine)
    yield engine
    drop_database(engine)
    engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def redis_client() -> fakeredis.FakeRedis:
    """Isolated fake Redis server per test."""
    return fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)


@pytest.fixture
def cache(redis_client) -> CacheCoordinator:
    return CacheCoordinator(redis_client, default_ttl=300, lease_ttl=10)


@pytest.fixture
def engine(db_session, cache) -> IncidentMutationEngine:
    return IncidentMutationEngine(db_session, cache)


@pytest.fixture
def user(db_session):
    return UserService(db_session).create_user(name="Ada Lovelace", email="ada@example.com")


@pytest.fixture
def client(session_factory, cache) -> Generator[TestClient, None, None]:
    """API client wired to the test database and fake Redis."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    limiter.reset()
    yield TestClient(app)
    limiter.reset()
    app.dependency_overrides.clear()
