"""
Aggregate root - the single-writer unit of consistency

An aggregate is rebuilt from its stream on every reconcile pass, asked to
make decisions, and the events it produced are committed back. There is
no long-lived cached aggregate.
"""

from typing import Callable, Protocol

from aeto.kernel.events import Event
from aeto.kernel.stream import Commit, Stream
from aeto.kernel.time import TimeProvider, default_time_provider, format_timestamp


class EventConsumer(Protocol):
    """Anything that can be fed events one at a time (state, projections)"""

    def on(self, event: Event) -> None:
        ...


class Aggregate(Protocol):
    """What the repository needs from an aggregate to persist it"""

    @property
    def id(self) -> str:
        ...

    @property
    def version(self) -> int:
        ...

    def commit(self) -> Commit:
        ...


class AggregateRoot:
    """
    Event bookkeeping shared by all aggregates

    The root exclusively owns its consumer (the aggregate state) and
    mutates it only through `on`. `version` counts persisted commits and is
    used as a marker, not as an optimistic concurrency token.
    """

    def __init__(
        self,
        aggregate_id: str,
        consumer: EventConsumer,
        time_provider: TimeProvider | None = None,
    ) -> None:
        self.id = aggregate_id
        self.version = 0
        self.last_event_sequence = 0
        self.uncommitted: list[Event] = []
        self._consumer = consumer
        self._time_provider = time_provider or default_time_provider

    def load_from_historical_events(self, stream: Stream) -> "AggregateRoot":
        """Replay a persisted stream, then set version to its commit count"""
        for event in stream.events():
            self._apply_to_internal_state(event)
        self.version = len(stream.commits())
        return self

    def apply(self, event: Event) -> Event:
        """
        Stamp, consume and buffer a new event

        The sequence is always last_event_sequence + 1 - an aggregate never
        applies an event out of order.
        """
        stamped = event.stamped(
            sequence=self.last_event_sequence + 1,
            timestamp=format_timestamp(self._time_provider.now()),
        )
        self._apply_to_internal_state(stamped)
        self.uncommitted.append(stamped)
        return stamped

    def _apply_to_internal_state(self, event: Event) -> None:
        self._consumer.on(event)
        self.last_event_sequence = event.sequence

    def commit_events(self, sink: Callable[[Event], None]) -> int:
        """
        Flush buffered events through sink and bump the version

        No-op when nothing is buffered, so empty commits never exist.

        Returns:
            Number of events flushed
        """
        if not self.uncommitted:
            return 0
        for event in self.uncommitted:
            sink(event)
        count = len(self.uncommitted)
        self.uncommitted = []
        self.version += 1
        return count

    def now(self) -> str:
        return format_timestamp(self._time_provider.now())
