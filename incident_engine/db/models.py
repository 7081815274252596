"""
SQLAlchemy models for the Incident Engine.
"""

from typing import Any, Dict

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.sql import func

from ..schemas.primitives import generate_id
from .base import Base

severity_enum = Enum("P1", "P2", "P3", name="incident_severity")
status_enum = Enum("OPEN", "ACK", "RESOLVED", name="incident_status")
event_type_enum = Enum(
    "CREATED", "STATUS_CHANGED", "COMMENTED", name="incident_event_type"
)


def _isoformat(value) -> Any:
    return value.isoformat() if value else None


class UserModel(Base):
    """SQLAlchemy model for users who open and comment on incidents."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=False, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "created_at": _isoformat(self.created_at),
        }

    def to_summary(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "email": self.email}


class IncidentModel(Base):
    """SQLAlchemy model for incidents.

    ``status`` changes only through the mutation engine's transition path,
    ``severity`` never changes after creation.
    """

    __tablename__ = "incidents"

    id = Column(String(36), primary_key=True, default=generate_id)
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    severity = Column(severity_enum, nullable=False, index=True)
    status = Column(status_enum, nullable=False, default="OPEN", index=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_incidents_created_at", "created_at"),
        Index("ix_incidents_status_severity", "status", "severity"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": _isoformat(self.created_at),
            "updated_at": _isoformat(self.updated_at),
        }


class IncidentEventModel(Base):
    """Append-only audit record of a state change on an incident.

    Rows are never updated or deleted. ``id`` grows with insertion order and
    breaks ties between events sharing a ``created_at``.
    """

    __tablename__ = "incident_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    incident_id = Column(
        String(36), ForeignKey("incidents.id"), nullable=False, index=True
    )
    type = Column(event_type_enum, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())

    __table_args__ = (
        Index("ix_incident_events_incident_created", "incident_id", "created_at"),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "id": self.id,
            "incident_id": self.incident_id,
            "type": self.type,
            "payload": self.payload,
            "created_at": _isoformat(self.created_at),
        }


class IdempotencyKeyModel(Base):
    """Ledger row mapping a client idempotency key to the incident it produced.

    The primary key on ``key`` is what makes concurrent inserts for the same
    key collide: exactly one of them commits.
    """

    __tablename__ = "idempotency_keys"

    key = Column(String(255), primary_key=True)
    request_hash = Column(String(64), nullable=False)
    result_id = Column(String(36), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to dictionary."""
        return {
            "key": self.key,
            "request_hash": self.request_hash,
            "result_id": self.result_id,
            "created_at": _isoformat(self.created_at),
            "expires_at": _isoformat(self.expires_at),
        }
