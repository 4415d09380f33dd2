"""
Deterministic replay of an event list through a consumer

Projections are pure functions of the event list: replaying the same list
twice into fresh consumers yields identical state.
"""

from pydantic import BaseModel, ConfigDict

from aeto.kernel.aggregate import EventConsumer
from aeto.kernel.events import Event
from aeto.kernel.logging import get_logger

logger = get_logger(__name__)


class ReplayResult(BaseModel):
    """Outcome of a replay - holds the error that stopped it, if any"""

    error: Exception | None = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def failed(self) -> bool:
        return self.error is not None


def replay(consumer: EventConsumer, events: list[Event]) -> ReplayResult:
    """
    Feed every event to the consumer in order

    Replay stops at the first failing event. The consumer is then in a
    partially applied state and callers must discard it instead of
    writing anything derived from it.
    """
    for event in events:
        try:
            consumer.on(event)
        except Exception as e:
            logger.error(
                "replay failed",
                consumer=type(consumer).__name__,
                event_type=event.event_type(),
                sequence=event.sequence,
                error=str(e),
            )
            return ReplayResult(error=e)
    return ReplayResult()
