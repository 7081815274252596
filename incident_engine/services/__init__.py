"""Service layer for the Incident Engine."""

from .incidents import CreateResult, IncidentMutationEngine
from .users import UserService

__all__ = ["CreateResult", "IncidentMutationEngine", "UserService"]
