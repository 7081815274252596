"""
Canonical enums for incidents and their event log.
"""

from enum import Enum


class Severity(str, Enum):
    """Incident priority levels (P1 highest)."""

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class IncidentStatus(str, Enum):
    """Incident lifecycle stages."""

    OPEN = "OPEN"
    ACK = "ACK"
    RESOLVED = "RESOLVED"


class EventType(str, Enum):
    """Kinds of facts recorded in an incident's event log."""

    CREATED = "CREATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    COMMENTED = "COMMENTED"
