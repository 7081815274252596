"""
User directory.

Only what the incident engine needs: register a user with a unique email and
look one up by id.
"""

from typing import Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db.models import UserModel
from ..errors import UserAlreadyExists, UserNotFound
from ..schemas.primitives import generate_id, utc_now

logger = structlog.get_logger()


class UserService:
    """Service for managing users in the database."""

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, name: str, email: str) -> UserModel:
        """Create a new user.

        Raises:
            UserAlreadyExists: the email is already registered
        """
        user = UserModel(id=generate_id(), name=name, email=email, created_at=utc_now())
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise UserAlreadyExists(email) from exc
        self.db.refresh(user)
        logger.info("user_created", user_id=user.id)
        return user

    def get_user(self, user_id: str) -> Optional[UserModel]:
        """Get a user by ID."""
        return self.db.get(UserModel, user_id)

    def require_user(self, user_id: str) -> UserModel:
        user = self.get_user(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user
