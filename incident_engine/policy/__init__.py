"""Lifecycle policy for incidents."""

from .transitions import (
    STATUS_TRANSITIONS,
    TransitionDecision,
    allowed_transitions,
    check_transition,
    is_terminal,
)

__all__ = [
    "STATUS_TRANSITIONS",
    "TransitionDecision",
    "allowed_transitions",
    "check_transition",
    "is_terminal",
]
