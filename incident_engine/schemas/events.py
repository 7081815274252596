"""
Incident event payloads.

The event log stores payloads as JSON; each event type has exactly one
payload shape. ``parse_event_payload`` turns a stored ``(type, payload)``
pair back into the typed model.
"""

from __future__ import annotations

from typing import Any, ClassVar, Dict, Type, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import EventType, IncidentStatus, Severity


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    event_type: ClassVar[EventType]

    def to_payload(self) -> Dict[str, Any]:
        """JSON-ready dict as stored in ``incident_events.payload``."""
        return self.model_dump(mode="json", by_alias=True)


class CreatedPayload(_Payload):
    event_type: ClassVar[EventType] = EventType.CREATED

    title: str
    description: str
    severity: Severity
    created_by: str


class StatusChangedPayload(_Payload):
    event_type: ClassVar[EventType] = EventType.STATUS_CHANGED

    from_status: IncidentStatus = Field(..., alias="from")
    to_status: IncidentStatus = Field(..., alias="to")


class CommentedPayload(_Payload):
    event_type: ClassVar[EventType] = EventType.COMMENTED

    text: str = Field(..., min_length=1)
    author_id: str


EventPayload = Union[CreatedPayload, StatusChangedPayload, CommentedPayload]

PAYLOAD_MODELS: Dict[EventType, Type[_Payload]] = {
    EventType.CREATED: CreatedPayload,
    EventType.STATUS_CHANGED: StatusChangedPayload,
    EventType.COMMENTED: CommentedPayload,
}


def parse_event_payload(event_type: Union[EventType, str], data: Dict[str, Any]) -> EventPayload:
    """Validate a stored payload against the model for its event type.

    Raises:
        ValueError: unknown event type
        pydantic.ValidationError: payload shape does not match the type
    """
    model = PAYLOAD_MODELS[EventType(event_type)]
    return model.model_validate(data)
