"""
Incident Engine

Incident lifecycle service: idempotent creation, a transactional event log,
and a read-through cache that stays correct under concurrent writers.
"""

import importlib.metadata

__version__ = importlib.metadata.version("incident-engine")

from .cache import CacheCoordinator
from .errors import (
    IdempotencyKeyConflict,
    IncidentEngineError,
    IncidentNotFound,
    InvalidTransition,
    UserAlreadyExists,
    UserNotFound,
)
from .schemas.enums import EventType, IncidentStatus, Severity
from .services import CreateResult, IncidentMutationEngine, UserService

__all__ = [
    "CacheCoordinator",
    "CreateResult",
    "EventType",
    "IdempotencyKeyConflict",
    "IncidentEngineError",
    "IncidentMutationEngine",
    "IncidentNotFound",
    "IncidentStatus",
    "InvalidTransition",
    "Severity",
    "UserAlreadyExists",
    "UserNotFound",
    "UserService",
]
