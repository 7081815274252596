"""
Database package for the Incident Engine.
"""

from .base import Base, atomic, get_db, get_engine, get_session_local, init_database
from .event_log import IncidentEventLog
from .idempotency import IdempotencyCheck, IdempotencyLedger, compute_request_hash
from .models import IdempotencyKeyModel, IncidentEventModel, IncidentModel, UserModel

__all__ = [
    "Base",
    "atomic",
    "get_db",
    "get_engine",
    "get_session_local",
    "init_database",
    "IncidentEventLog",
    "IdempotencyCheck",
    "IdempotencyLedger",
    "compute_request_hash",
    "IdempotencyKeyModel",
    "IncidentEventModel",
    "IncidentModel",
    "UserModel",
]
