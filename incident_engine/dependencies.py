"""
FastAPI dependencies wiring the database session and cache into the engine.
"""

from typing import Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .cache import CacheCoordinator
from .config import get_settings
from .db.base import get_db
from .services.incidents import IncidentMutationEngine
from .services.users import UserService

_cache: Optional[CacheCoordinator] = None


def get_cache() -> CacheCoordinator:
    """Process-wide cache coordinator, built on first use."""
    global _cache
    if _cache is None:
        _cache = CacheCoordinator.from_settings(get_settings())
    return _cache


def get_incident_engine(
    db: Session = Depends(get_db),
    cache: CacheCoordinator = Depends(get_cache),
) -> IncidentMutationEngine:
    return IncidentMutationEngine.from_settings(db, cache, get_settings())


def get_user_service(db: Session = Depends(get_db)) -> UserService:
    return UserService(db)
