"""
Incident Event Log.

Append-only audit trail of state changes per incident. The log joins the
caller's unit of work: ``append`` adds and flushes the row but never commits,
so an event and the state change it records land in the same transaction.
"""

from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import Session

from ..schemas.events import EventPayload
from ..schemas.primitives import utc_now
from .models import IncidentEventModel


class IncidentEventLog:
    """Append and query incident events.

    Usage:
        log = IncidentEventLog(db_session)
        log.append(incident.id, StatusChangedPayload(from_status="OPEN", to_status="ACK"))
        db_session.commit()
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def append(
        self,
        incident_id: str,
        payload: EventPayload,
        created_at: Optional[datetime] = None,
    ) -> IncidentEventModel:
        """Record one event for an incident.

        Args:
            incident_id: ID of the incident the event belongs to
            payload: Typed payload; its class decides the event type
            created_at: Defaults to the log's clock

        Returns:
            The flushed (not yet committed) IncidentEventModel
        """
        entry = IncidentEventModel(
            incident_id=incident_id,
            type=payload.event_type.value,
            payload=payload.to_payload(),
            created_at=created_at or self.clock(),
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def recent(self, incident_id: str, limit: int = 20) -> List[IncidentEventModel]:
        """Most recent events for an incident, newest first."""
        return (
            self.db.query(IncidentEventModel)
            .filter(IncidentEventModel.incident_id == incident_id)
            .order_by(desc(IncidentEventModel.created_at), desc(IncidentEventModel.id))
            .limit(limit)
            .all()
        )

    def history(self, incident_id: str) -> List[IncidentEventModel]:
        """Full event history for an incident, oldest first."""
        return (
            self.db.query(IncidentEventModel)
            .filter(IncidentEventModel.incident_id == incident_id)
            .order_by(asc(IncidentEventModel.created_at), asc(IncidentEventModel.id))
            .all()
        )

    def count(self, incident_id: str, event_type: Optional[str] = None) -> int:
        query = self.db.query(IncidentEventModel).filter(
            IncidentEventModel.incident_id == incident_id
        )
        if event_type:
            query = query.filter(IncidentEventModel.type == event_type)
        return query.count()
