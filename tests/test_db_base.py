"""Tests for database URL resolution and the transaction helper."""

import pytest

from incident_engine.config import get_settings
from incident_engine.db.base import atomic, get_database_url
from incident_engine.db.models import UserModel


class TestGetDatabaseUrl:
    def test_falls_back_to_settings(self, monkeypatch):
        # Settings carries values loaded from .env, not only os.environ.
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.setattr(get_settings(), "database_url", "sqlite:///./from-dotenv.db")

        assert get_database_url() == "sqlite:///./from-dotenv.db"

    def test_environment_overrides_settings(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///./from-env.db")
        monkeypatch.setattr(get_settings(), "database_url", "sqlite:///./from-dotenv.db")

        assert get_database_url() == "sqlite:///./from-env.db"

    def test_explicit_url_wins(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite:///./from-env.db")
        assert get_database_url("sqlite:///./explicit.db") == "sqlite:///./explicit.db"

    def test_async_drivers_rewritten(self):
        assert get_database_url("sqlite+aiosqlite:///./x.db") == "sqlite:///./x.db"
        assert (
            get_database_url("postgresql+asyncpg://u:secret@db/incidents")
            == "postgresql+psycopg://u:secret@db/incidents"
        )


class TestAtomic:
    def test_commits_on_success(self, db_session):
        with atomic(db_session):
            db_session.add(UserModel(name="Ada", email="ada@example.com"))

        db_session.rollback()
        assert db_session.query(UserModel).count() == 1

    def test_rolls_back_on_error(self, db_session):
        with pytest.raises(RuntimeError):
            with atomic(db_session):
                db_session.add(UserModel(name="Ada", email="ada@example.com"))
                db_session.flush()
                raise RuntimeError("boom")

        assert db_session.query(UserModel).count() == 0
