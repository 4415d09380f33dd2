"""
Kernel - Core event sourcing infrastructure

The kernel provides the aggregate, event, commit and stream types, the
serializer and repository that persist them, and deterministic replay.
Nothing in here knows what a tenant is.

Fun fact: Event sourcing was inspired by accountants - they never erase ledger
entries, they add correcting entries. Controllers can do the same.
"""

from aeto.kernel.aggregate import Aggregate, AggregateRoot, EventConsumer
from aeto.kernel.chunk_store import (
    ChunkStore,
    EventStreamChunk,
    InMemoryChunkStore,
    SQLiteChunkStore,
)
from aeto.kernel.config import OperatorConfig
from aeto.kernel.errors import (
    AetoError,
    EventStoreError,
    GenerateError,
    InvariantViolation,
    UnboundEventType,
)
from aeto.kernel.events import Event
from aeto.kernel.reconcile import ReconcileContext, RequeueDirective, Result, ResultList
from aeto.kernel.replay import ReplayResult, replay
from aeto.kernel.repository import Repository, stream_id
from aeto.kernel.serializer import JsonSerializer, Record
from aeto.kernel.stream import Commit, Stream
from aeto.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # Events & streams
    "Event",
    "Commit",
    "Stream",
    "Aggregate",
    "AggregateRoot",
    "EventConsumer",
    "replay",
    "ReplayResult",
    # Persistence
    "JsonSerializer",
    "Record",
    "Repository",
    "stream_id",
    "ChunkStore",
    "EventStreamChunk",
    "InMemoryChunkStore",
    "SQLiteChunkStore",
    # Reconcile
    "OperatorConfig",
    "ReconcileContext",
    "RequeueDirective",
    "Result",
    "ResultList",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Errors
    "AetoError",
    "EventStoreError",
    "UnboundEventType",
    "InvariantViolation",
    "GenerateError",
]
