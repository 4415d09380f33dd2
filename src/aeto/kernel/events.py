"""
Base Event model for event sourcing

Events are immutable facts about one aggregate instance. They form an
append-only log that is the only source of truth for a tenant - every
other view is replayed from it.

Fun fact: In event sourcing, the event log is like a time machine -
you can replay history to any point and see exactly what the tenant
looked like at that moment!
"""

from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

E = TypeVar("E", bound="Event")


class Event(BaseModel):
    """
    Base event class - all domain events inherit from this

    Events are:
    - Immutable (frozen models, never modified after creation)
    - Sequenced (1-based, strictly increasing within a stream)
    - Tagged (the class name is the stable wire tag)

    The sequence is 0 until the event is applied to an aggregate. Applying
    produces a stamped copy; the original instance is never touched.
    """

    sequence: int = Field(
        default=0,
        alias="seq",
        ge=0,
        description="Position of the event in its stream, assigned at apply time",
    )

    timestamp: str = Field(
        default="",
        alias="ts",
        description="RFC3339 UTC timestamp assigned at apply time",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @classmethod
    def event_type(cls) -> str:
        """Stable type tag used by the serializer registry"""
        return cls.__name__

    def stamped(self: E, sequence: int, timestamp: str) -> E:
        """Return a copy of this event with sequence and timestamp assigned"""
        return self.model_copy(update={"sequence": sequence, "timestamp": timestamp})

    def payload(self) -> dict:
        """Event-specific data as JSON-compatible dict (wire field names)"""
        return self.model_dump(mode="json", by_alias=True)


EventList = list[Event]
