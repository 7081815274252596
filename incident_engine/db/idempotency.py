"""
Idempotency Ledger.

Maps a client-supplied idempotency key to the fingerprint of the request that
first used it and to the incident that request produced. A record lives for
a configurable TTL; once expired it is void and is purged on the next check.

The ledger joins the caller's unit of work: ``store`` flushes but never
commits, so the record can be written in the same transaction as the
incident it points at.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Mapping, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import IdempotencyRecordExists
from ..schemas.primitives import as_utc, utc_now
from .models import IdempotencyKeyModel

logger = structlog.get_logger()

DEFAULT_TTL = timedelta(hours=24)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def compute_request_hash(payload: Mapping[str, Any]) -> str:
    """SHA-256 over the canonical JSON form of a request payload.

    Keys are sorted and separators are compact, so two payloads with the same
    content hash identically whatever their key order.
    """
    canonical = json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IdempotencyState(str, Enum):
    ABSENT = "absent"
    MATCHED = "matched"
    CONFLICT = "conflict"


@dataclass(frozen=True)
class IdempotencyCheck:
    """Result of looking a key up in the ledger."""

    state: IdempotencyState
    result_id: Optional[str] = None

    @classmethod
    def absent(cls) -> "IdempotencyCheck":
        return cls(IdempotencyState.ABSENT)

    @classmethod
    def matched(cls, result_id: str) -> "IdempotencyCheck":
        return cls(IdempotencyState.MATCHED, result_id)

    @classmethod
    def conflict(cls) -> "IdempotencyCheck":
        return cls(IdempotencyState.CONFLICT)

    @property
    def is_absent(self) -> bool:
        return self.state is IdempotencyState.ABSENT

    @property
    def is_matched(self) -> bool:
        return self.state is IdempotencyState.MATCHED

    @property
    def is_conflict(self) -> bool:
        return self.state is IdempotencyState.CONFLICT


class IdempotencyLedger:
    """Service for the idempotency key ledger.

    Usage:
        ledger = IdempotencyLedger(db_session, ttl=timedelta(hours=24))
        check = ledger.check(key, request_hash)
        if check.is_absent:
            ledger.store(key, request_hash, incident.id)
            db_session.commit()
    """

    def __init__(
        self,
        db: Session,
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.db = db
        self.ttl = ttl
        self.clock = clock

    def _is_expired(self, record: IdempotencyKeyModel, now: datetime) -> bool:
        return as_utc(record.expires_at) <= now

    def check(self, key: str, request_hash: str) -> IdempotencyCheck:
        """Look up ``key`` and compare its stored fingerprint.

        Returns:
            ABSENT when no live record exists (an expired one is purged),
            MATCHED with the stored result id when the hashes agree,
            CONFLICT when the key was used for a different payload.
        """
        record = self.db.get(IdempotencyKeyModel, key, populate_existing=True)
        if record is None:
            return IdempotencyCheck.absent()

        if self._is_expired(record, self.clock()):
            logger.info("idempotency_key_expired", idempotency_key=key)
            self.db.delete(record)
            self.db.commit()
            return IdempotencyCheck.absent()

        if record.request_hash != request_hash:
            return IdempotencyCheck.conflict()

        return IdempotencyCheck.matched(record.result_id)

    def store(
        self,
        key: str,
        request_hash: str,
        result_id: str,
        ttl: Optional[timedelta] = None,
    ) -> IdempotencyKeyModel:
        """Insert the record for ``key``. Flushes, does not commit.

        An expired record with the same key is replaced.

        Raises:
            IdempotencyRecordExists: a live record already holds ``key``, either
                seen up front or reported by the store's unique constraint.
                After the latter the session must be rolled back.
        """
        now = self.clock()
        existing = self.db.get(IdempotencyKeyModel, key)
        if existing is not None:
            if not self._is_expired(existing, now):
                raise IdempotencyRecordExists(key)
            self.db.delete(existing)
            self.db.flush()

        record = IdempotencyKeyModel(
            key=key,
            request_hash=request_hash,
            result_id=result_id,
            created_at=now,
            expires_at=now + (ttl or self.ttl),
        )
        self.db.add(record)
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise IdempotencyRecordExists(key) from exc
        return record

    def purge_expired(self) -> int:
        """Delete every expired record. Returns the number removed."""
        now = self.clock()
        expired = [
            record
            for record in self.db.query(IdempotencyKeyModel)
            .filter(IdempotencyKeyModel.expires_at <= now)
            .all()
            if self._is_expired(record, now)
        ]
        for record in expired:
            self.db.delete(record)
        self.db.commit()
        if expired:
            logger.info("idempotency_keys_purged", count=len(expired))
        return len(expired)
