"""
Incident API Routes.

REST endpoints for users and incidents. All endpoints are prefixed with /v1.
Domain errors raised by the services are rendered by the handler installed in
``api.py``.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Header, Path, Query, Request, Response

from .dependencies import get_incident_engine, get_user_service
from .rate_limit import limit_writes
from .schemas.enums import IncidentStatus, Severity
from .schemas.incidents import CommentCreate, IncidentCreate, StatusUpdate, UserCreate
from .schemas.primitives import UUID_PATTERN
from .services.incidents import IncidentMutationEngine
from .services.users import UserService

router = APIRouter(prefix="/v1")


# =============================================================================
# User Endpoints
# =============================================================================


@router.post("/users", status_code=201, tags=["users"])
@limit_writes
def create_user(
    request: Request,
    user: UserCreate,
    service: UserService = Depends(get_user_service),
) -> Dict[str, Any]:
    """Register a user. Emails are unique."""
    return service.create_user(name=user.name, email=user.email).to_dict()


# =============================================================================
# Incident Endpoints
# =============================================================================


@router.post(
    "/incidents",
    status_code=201,
    tags=["incidents"],
    responses={
        200: {"description": "Incident already exists (same key and body)"},
        201: {"description": "Incident created"},
        404: {"description": "User not found"},
        409: {"description": "Idempotency key conflict (same key, different body)"},
        429: {"description": "Rate limit exceeded"},
    },
)
@limit_writes
def create_incident(
    request: Request,
    incident: IncidentCreate,
    response: Response,
    idempotency_key: Optional[str] = Header(
        None, alias="Idempotency-Key", min_length=1, max_length=255
    ),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> Dict[str, Any]:
    """
    Create a new incident.

    Send an ``Idempotency-Key`` header to make retries safe: repeating the
    same body with the same key returns the original incident with 200.
    """
    result = engine.create(
        title=incident.title,
        description=incident.description,
        severity=incident.severity,
        creator_id=incident.created_by,
        idempotency_key=idempotency_key,
    )
    if not result.created:
        response.status_code = 200
    return result.incident.to_dict()


@router.get("/incidents", tags=["incidents"])
def list_incidents(
    status: Optional[IncidentStatus] = None,
    severity: Optional[Severity] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> Dict[str, Any]:
    """List incidents, newest first, with optional filters."""
    return engine.list_incidents(
        status=status,
        severity=severity,
        created_from=created_from,
        created_to=created_to,
        page=page,
        limit=limit,
    )


@router.get("/incidents/{incident_id}", tags=["incidents"])
def get_incident(
    incident_id: str = Path(..., pattern=UUID_PATTERN),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> Dict[str, Any]:
    """
    Incident details with its last events.

    Served from the cache; status changes and comments invalidate it.
    """
    return engine.read(incident_id)


@router.get("/incidents/{incident_id}/events", tags=["incidents"])
def get_incident_events(
    incident_id: str = Path(..., pattern=UUID_PATTERN),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> List[Dict[str, Any]]:
    """Full event history of an incident, oldest first."""
    return [event.to_dict() for event in engine.history(incident_id)]


@router.patch("/incidents/{incident_id}/status", tags=["incidents"])
def update_incident_status(
    update: StatusUpdate,
    incident_id: str = Path(..., pattern=UUID_PATTERN),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> Dict[str, Any]:
    """
    Update incident status.

    Valid transitions: OPEN->ACK, OPEN->RESOLVED, ACK->RESOLVED. Setting the
    current status again is a no-op.
    """
    return engine.transition(incident_id, update.status).to_dict()


@router.post("/incidents/{incident_id}/comments", status_code=201, tags=["incidents"])
@limit_writes
def add_comment(
    request: Request,
    comment: CommentCreate,
    incident_id: str = Path(..., pattern=UUID_PATTERN),
    engine: IncidentMutationEngine = Depends(get_incident_engine),
) -> Dict[str, Any]:
    """Add a comment; recorded as a COMMENTED event."""
    return engine.comment(incident_id, comment.comment, comment.user_id).to_dict()
