"""
Status transition authority for the incident lifecycle.

This module is a pure, testable gate: no DB access, no cache, no request
objects. It decides whether an incident may move from one status to another.

Lifecycle rules:
- OPEN -> ACK
- OPEN -> RESOLVED
- ACK -> RESOLVED
- RESOLVED is terminal
- Moving to the current status is always allowed and is a no-op: callers
  must skip the event append and the persistence write.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Tuple, Union

from ..errors import InvalidTransition
from ..schemas.enums import IncidentStatus

STATUS_TRANSITIONS: Dict[IncidentStatus, Tuple[IncidentStatus, ...]] = {
    IncidentStatus.OPEN: (IncidentStatus.ACK, IncidentStatus.RESOLVED),
    IncidentStatus.ACK: (IncidentStatus.RESOLVED,),
    IncidentStatus.RESOLVED: (),
}


class TransitionDecision(str, Enum):
    """Outcome of an allowed transition check."""

    APPLY = "apply"
    NO_OP = "no_op"


def allowed_transitions(status: Union[IncidentStatus, str]) -> Tuple[IncidentStatus, ...]:
    """Statuses reachable in one move from ``status``."""
    return STATUS_TRANSITIONS[IncidentStatus(status)]


def check_transition(
    current: Union[IncidentStatus, str], requested: Union[IncidentStatus, str]
) -> TransitionDecision:
    """
    Decide whether ``current`` may move to ``requested``.

    Returns:
        TransitionDecision.NO_OP for a self-transition,
        TransitionDecision.APPLY for an allowed move.

    Raises:
        InvalidTransition: carrying both statuses and the allowed set
    """
    current = IncidentStatus(current)
    requested = IncidentStatus(requested)

    if current == requested:
        return TransitionDecision.NO_OP

    allowed = STATUS_TRANSITIONS[current]
    if requested not in allowed:
        raise InvalidTransition(
            current=current.value,
            attempted=requested.value,
            allowed=[status.value for status in allowed],
        )
    return TransitionDecision.APPLY


def is_terminal(status: Union[IncidentStatus, str]) -> bool:
    return not STATUS_TRANSITIONS[IncidentStatus(status)]
