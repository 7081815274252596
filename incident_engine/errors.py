"""
Error kinds raised by the incident engine.

Every error carries a stable ``code`` for programmatic handling and renders
to the JSON error body through ``to_dict()``. The HTTP layer maps each class
to a status code; the engine itself never retries any of them.
"""

from typing import Any, Dict, Iterable, Optional


class IncidentEngineError(Exception):
    """Base class for all domain errors."""

    code = "INCIDENT_ENGINE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(f"{self.code}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for JSON serialization."""
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class UserNotFound(IncidentEngineError):
    code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("User not found", {"user_id": user_id})


class UserAlreadyExists(IncidentEngineError):
    code = "USER_ALREADY_EXISTS"

    def __init__(self, email: str):
        self.email = email
        super().__init__("User with this email already exists", {"email": email})


class IncidentNotFound(IncidentEngineError):
    code = "INCIDENT_NOT_FOUND"

    def __init__(self, incident_id: str):
        self.incident_id = incident_id
        super().__init__("Incident not found", {"incident_id": incident_id})


class InvalidTransition(IncidentEngineError):
    """A lifecycle move the state machine does not allow."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, current: str, attempted: str, allowed: Iterable[str]):
        self.current = current
        self.attempted = attempted
        self.allowed = list(allowed)
        super().__init__(
            f"Cannot transition from {current} to {attempted}",
            {
                "current_status": current,
                "attempted_status": attempted,
                "allowed_transitions": self.allowed,
            },
        )


class IdempotencyKeyConflict(IncidentEngineError):
    """The idempotency key was already used with a different request body."""

    code = "IDEMPOTENCY_KEY_CONFLICT"

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            "Idempotency key already used with different request body",
            {"idempotency_key": key},
        )


class IdempotencyRecordExists(Exception):
    """A live ledger record already holds this key.

    Internal to the ledger/engine seam: the engine resolves it through the
    normal check path and never lets it reach a client.
    """

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Idempotency key {key!r} already has a live record")
