"""
JSON serializer for heterogeneous event streams

A stream holds many event kinds in one ordered collection. Each event is
written as an envelope carrying its type tag, and read back through a
registry of known event classes populated at startup.
"""

import json

from pydantic import BaseModel, ValidationError

from aeto.kernel.errors import EventDecodeError, UnboundEventType
from aeto.kernel.events import Event


class Record(BaseModel):
    """Serialized representation of an event"""

    data: bytes


class JsonSerializer:
    """
    Serializer mapping type tags to event classes

    Envelope format: {"Type": "<tag>", "Data": {...payload...}}
    """

    def __init__(self, *events: type[Event]) -> None:
        self._event_types: dict[str, type[Event]] = {}
        self.register(*events)

    def register(self, *events: type[Event]) -> None:
        """Register event classes; may be called more than once"""
        for event_cls in events:
            self._event_types.setdefault(event_cls.event_type(), event_cls)

    def registered(self) -> list[str]:
        return sorted(self._event_types)

    def marshal_event(self, event: Event) -> Record:
        """Convert an event to its persistent Record"""
        envelope = {"Type": event.event_type(), "Data": event.payload()}
        return Record(data=json.dumps(envelope, separators=(",", ":")).encode("utf-8"))

    def unmarshal_event(self, record: Record) -> Event:
        """
        Convert a Record back into a typed event

        Raises:
            UnboundEventType: If the type tag was never registered
            EventDecodeError: If the envelope or payload is malformed
        """
        try:
            envelope = json.loads(record.data)
            event_type = envelope["Type"]
            data = envelope["Data"]
        except (ValueError, KeyError, TypeError) as e:
            raise EventDecodeError("unable to unmarshal event") from e

        event_cls = self._event_types.get(event_type)
        if event_cls is None:
            raise UnboundEventType(event_type)

        try:
            return event_cls.model_validate(data)
        except ValidationError as e:
            raise EventDecodeError(
                f"unable to unmarshal event data into {event_type}: {e}"
            ) from e
