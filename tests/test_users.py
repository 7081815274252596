"""Tests for the user directory."""

import pytest

from incident_engine.db.models import UserModel
from incident_engine.errors import UserAlreadyExists, UserNotFound
from incident_engine.services.users import UserService


class TestUserService:
    def test_create_and_get(self, db_session):
        service = UserService(db_session)
        user = service.create_user(name="Grace Hopper", email="grace@example.com")

        assert user.id
        assert service.get_user(user.id).email == "grace@example.com"
        assert user.to_summary() == {
            "id": user.id,
            "name": "Grace Hopper",
            "email": "grace@example.com",
        }

    def test_duplicate_email_rejected(self, db_session):
        service = UserService(db_session)
        service.create_user(name="Grace", email="grace@example.com")

        with pytest.raises(UserAlreadyExists) as exc_info:
            service.create_user(name="Other Grace", email="grace@example.com")

        assert exc_info.value.to_dict() == {
            "code": "USER_ALREADY_EXISTS",
            "message": "User with this email already exists",
            "details": {"email": "grace@example.com"},
        }
        assert db_session.query(UserModel).count() == 1

    def test_get_missing_returns_none(self, db_session):
        assert UserService(db_session).get_user("missing") is None

    def test_require_missing_raises(self, db_session):
        with pytest.raises(UserNotFound):
            UserService(db_session).require_user("missing")
