"""
Request schemas for the incident API.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, constr

from .enums import IncidentStatus, Severity
from .primitives import UUID_PATTERN


class UserCreate(BaseModel):
    """Register a user who can open and comment on incidents."""

    model_config = ConfigDict(extra="forbid")

    name: constr(min_length=1, max_length=255)
    email: constr(min_length=3, max_length=320, pattern=r"^[^@\s]+@[^@\s]+$")


class IncidentCreate(BaseModel):
    """Body of ``POST /v1/incidents``.

    The ``Idempotency-Key`` header, not the body, scopes retries.
    """

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "title": "Database connection timeout",
                "description": "Production database experiencing connection timeouts",
                "severity": "P1",
                "created_by": "550e8400-e29b-41d4-a716-446655440000",
            }
        },
    )

    title: constr(min_length=1, max_length=255)
    description: str
    severity: Severity
    created_by: constr(pattern=UUID_PATTERN) = Field(
        ..., description="ID of the user opening the incident"
    )


class StatusUpdate(BaseModel):
    """Body of ``PATCH /v1/incidents/{id}/status``."""

    model_config = ConfigDict(extra="forbid")

    status: IncidentStatus


class CommentCreate(BaseModel):
    """Body of ``POST /v1/incidents/{id}/comments``."""

    model_config = ConfigDict(extra="forbid")

    comment: constr(min_length=1)
    user_id: constr(pattern=UUID_PATTERN)
