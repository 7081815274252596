"""
Incident Mutation Engine.

Orchestrates the idempotency ledger, the status transition authority, the
event log and the cache coordinator into the externally visible operations:
create, transition status, comment and read.

Every multi-row write commits as one transaction. Cache invalidation happens
only after that commit and never fails the mutation.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

import structlog
from sqlalchemy import desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..cache import CacheCoordinator
from ..config import Settings
from ..db.base import atomic
from ..db.event_log import IncidentEventLog
from ..db.idempotency import (
    IdempotencyCheck,
    IdempotencyLedger,
    compute_request_hash,
)
from ..db.models import IncidentEventModel, IncidentModel, UserModel
from ..errors import (
    IdempotencyKeyConflict,
    IdempotencyRecordExists,
    IncidentNotFound,
)
from ..policy.transitions import TransitionDecision, check_transition
from ..schemas.enums import IncidentStatus, Severity
from ..schemas.events import CommentedPayload, CreatedPayload, StatusChangedPayload
from ..schemas.primitives import generate_id, utc_now
from .users import UserService

logger = structlog.get_logger()

DEFAULT_EVENT_WINDOW = 20
MAX_PAGE_SIZE = 100
MAX_CREATE_ATTEMPTS = 2


@dataclass(frozen=True)
class CreateResult:
    """Outcome of ``create``: ``created`` is False for an idempotent replay."""

    incident: IncidentModel
    created: bool


class IncidentMutationEngine:
    """Service for creating, transitioning, commenting on and reading incidents.

    Usage:
        engine = IncidentMutationEngine(db_session, cache)
        result = engine.create("DB down", "Timeouts", Severity.P1, user.id, "key-1")
        engine.transition(result.incident.id, IncidentStatus.ACK)
    """

    def __init__(
        self,
        db: Session,
        cache: CacheCoordinator,
        ledger: Optional[IdempotencyLedger] = None,
        event_log: Optional[IncidentEventLog] = None,
        event_window: int = DEFAULT_EVENT_WINDOW,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.cache = cache
        self.clock = clock
        self.ledger = ledger or IdempotencyLedger(db, clock=clock)
        self.event_log = event_log or IncidentEventLog(db, clock=clock)
        self.event_window = event_window
        self.users = UserService(db)

    @classmethod
    def from_settings(
        cls, db: Session, cache: CacheCoordinator, settings: Settings
    ) -> "IncidentMutationEngine":
        return cls(
            db,
            cache,
            ledger=IdempotencyLedger(
                db, ttl=timedelta(hours=settings.idempotency_ttl_hours)
            ),
            event_window=settings.incident_event_window,
        )

    # Lookups

    def _get_incident(self, incident_id: str, for_update: bool = False) -> IncidentModel:
        incident = self.db.get(
            IncidentModel,
            incident_id,
            with_for_update=for_update or None,
            populate_existing=True,
        )
        if incident is None:
            raise IncidentNotFound(incident_id)
        return incident

    # Create

    @staticmethod
    def normalize_create_input(
        title: str, description: str, severity: Severity, creator_id: str
    ) -> Dict[str, Any]:
        """Canonical request body used for idempotency fingerprints."""
        return {
            "title": title,
            "description": description,
            "severity": Severity(severity).value,
            "created_by": creator_id,
        }

    def create(
        self,
        title: str,
        description: str,
        severity: Severity,
        creator_id: str,
        idempotency_key: Optional[str] = None,
    ) -> CreateResult:
        """
        Create an incident together with its CREATED event.

        With an idempotency key, a retry carrying the same payload returns the
        incident produced by the first call instead of creating another one.

        Raises:
            UserNotFound: creator does not exist
            IdempotencyKeyConflict: key already used with a different payload
        """
        severity = Severity(severity)
        self.users.require_user(creator_id)

        if not idempotency_key:
            incident = self._insert_incident(title, description, severity, creator_id)
            return CreateResult(incident, created=True)

        body = self.normalize_create_input(title, description, severity, creator_id)
        request_hash = compute_request_hash(body)
        log = logger.bind(idempotency_key=idempotency_key)

        check = self.ledger.check(idempotency_key, request_hash)
        attempts = 0
        while check.is_absent:
            attempts += 1
            try:
                incident = self._insert_incident(
                    title,
                    description,
                    severity,
                    creator_id,
                    idempotency=(idempotency_key, request_hash),
                )
            except IdempotencyRecordExists:
                # Another request committed this key first; our insert was rolled back.
                log.info("idempotency_race_lost", attempt=attempts)
                check = self.ledger.check(idempotency_key, request_hash)
                # Still absent means the winner's record expired in between:
                # insert again, once.
                if check.is_absent and attempts >= MAX_CREATE_ATTEMPTS:
                    raise
            else:
                log.info(
                    "incident_created", incident_id=incident.id, severity=severity.value
                )
                return CreateResult(incident, created=True)

        return self._resolve_existing(idempotency_key, check)

    def _resolve_existing(self, key: str, check: IdempotencyCheck) -> CreateResult:
        if check.is_conflict:
            logger.warning("idempotency_key_conflict", idempotency_key=key)
            raise IdempotencyKeyConflict(key)
        logger.info(
            "idempotency_replay", idempotency_key=key, incident_id=check.result_id
        )
        return CreateResult(self._get_incident(check.result_id), created=False)

    def _insert_incident(
        self,
        title: str,
        description: str,
        severity: Severity,
        creator_id: str,
        idempotency: Optional[tuple] = None,
    ) -> IncidentModel:
        now = self.clock()
        incident = IncidentModel(
            id=generate_id(),
            title=title,
            description=description,
            severity=severity.value,
            status=IncidentStatus.OPEN.value,
            created_by=creator_id,
            created_at=now,
            updated_at=now,
        )

        try:
            with atomic(self.db):
                self.db.add(incident)
                self.db.flush()
                self.event_log.append(
                    incident.id,
                    CreatedPayload(
                        title=title,
                        description=description,
                        severity=severity,
                        created_by=creator_id,
                    ),
                    created_at=now,
                )
                if idempotency is not None:
                    key, request_hash = idempotency
                    self.ledger.store(key, request_hash, incident.id)
        except IntegrityError as exc:
            # Only the ledger's primary key can collide inside this transaction.
            if idempotency is not None:
                raise IdempotencyRecordExists(idempotency[0]) from exc
            raise

        self.db.refresh(incident)
        return incident

    # Transition

    def _swap_status(
        self, incident_id: str, expected: str, new_status: str, now: datetime
    ) -> bool:
        """Compare-and-set the status. False when someone else moved it first."""
        result = self.db.execute(
            update(IncidentModel)
            .where(IncidentModel.id == incident_id, IncidentModel.status == expected)
            .values(status=new_status, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def transition(self, incident_id: str, new_status: IncidentStatus) -> IncidentModel:
        """
        Move an incident to ``new_status`` and record a STATUS_CHANGED event.

        A self-transition returns the incident untouched: no event, no write.

        Raises:
            IncidentNotFound: no such incident
            InvalidTransition: the lifecycle forbids the move
        """
        new_status = IncidentStatus(new_status)
        log = logger.bind(incident_id=incident_id, to_status=new_status.value)

        # Status only moves forward, so a lost compare-and-set can repeat at
        # most twice before the incident is RESOLVED.
        while True:
            with atomic(self.db):
                incident = self._get_incident(incident_id, for_update=True)
                current = incident.status
                if check_transition(current, new_status) is TransitionDecision.NO_OP:
                    return incident

                now = self.clock()
                swapped = self._swap_status(incident_id, current, new_status.value, now)
                if swapped:
                    self.event_log.append(
                        incident_id,
                        StatusChangedPayload(from_status=current, to_status=new_status),
                        created_at=now,
                    )
            if swapped:
                break
            log.warning("incident_transition_retry", observed_status=current)

        self.cache.invalidate_incident(incident_id)
        log.info("incident_status_changed", from_status=current)
        return self._get_incident(incident_id)

    # Comment

    def comment(self, incident_id: str, text: str, author_id: str) -> IncidentEventModel:
        """
        Append a COMMENTED event. Does not touch status or ``updated_at``.

        Raises:
            IncidentNotFound: no such incident
        """
        self._get_incident(incident_id)
        with atomic(self.db):
            event = self.event_log.append(
                incident_id, CommentedPayload(text=text, author_id=author_id)
            )
        self.db.refresh(event)

        self.cache.invalidate_incident(incident_id)
        logger.info("incident_commented", incident_id=incident_id, event_id=event.id)
        return event

    # Reads

    def read(self, incident_id: str) -> Dict[str, Any]:
        """
        Incident view with its creator and most recent events, newest first.

        Served from the cache when possible. A missing incident raises
        IncidentNotFound and is never cached.
        """
        key = CacheCoordinator.key("incident", incident_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        token = self.cache.begin_fill(key)
        view = self._build_view(incident_id)
        self.cache.complete_fill(key, view, token)
        return view

    def _build_view(self, incident_id: str) -> Dict[str, Any]:
        incident = self._get_incident(incident_id)
        creator = self.db.get(UserModel, incident.created_by)
        events = self.event_log.recent(incident_id, limit=self.event_window)

        view = incident.to_dict()
        view["user"] = creator.to_summary() if creator else None
        view["events"] = [event.to_dict() for event in events]
        return view

    def history(self, incident_id: str) -> List[IncidentEventModel]:
        """Complete event log of an incident, oldest first."""
        self._get_incident(incident_id)
        return self.event_log.history(incident_id)

    def list_incidents(
        self,
        status: Optional[IncidentStatus] = None,
        severity: Optional[Severity] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Filtered, paginated incident listing, newest first. Not cached."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_SIZE)

        query = self.db.query(IncidentModel)
        if status:
            query = query.filter(IncidentModel.status == IncidentStatus(status).value)
        if severity:
            query = query.filter(IncidentModel.severity == Severity(severity).value)
        if created_from:
            query = query.filter(IncidentModel.created_at >= created_from)
        if created_to:
            query = query.filter(IncidentModel.created_at <= created_to)

        total = query.count()
        incidents = (
            query.order_by(desc(IncidentModel.created_at), desc(IncidentModel.id))
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return {
            "data": [incident.to_dict() for incident in incidents],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if total else 0,
            },
        }
