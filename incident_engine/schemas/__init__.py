"""Pydantic schemas and enums for the Incident Engine."""

from .enums import EventType, IncidentStatus, Severity
from .events import (
    CommentedPayload,
    CreatedPayload,
    EventPayload,
    StatusChangedPayload,
    parse_event_payload,
)
from .incidents import CommentCreate, IncidentCreate, StatusUpdate, UserCreate

__all__ = [
    "CommentCreate",
    "CommentedPayload",
    "CreatedPayload",
    "EventPayload",
    "EventType",
    "IncidentCreate",
    "IncidentStatus",
    "Severity",
    "StatusChangedPayload",
    "StatusUpdate",
    "UserCreate",
    "parse_event_payload",
]
