"""
Repository - persists aggregate streams as chunks

get() rebuilds a full Stream from every chunk of a stream id, save()
writes the aggregate's pending commit as one new chunk and delete()
removes a stream once everything derived from it has been torn down.
"""

from aeto.kernel.aggregate import Aggregate
from aeto.kernel.chunk_store import ChunkStore, EventStreamChunk
from aeto.kernel.errors import StreamMismatch
from aeto.kernel.ids import stream_id as _stream_id
from aeto.kernel.logging import LogOperation, get_logger
from aeto.kernel.metrics import (
    chunks_written_total,
    events_committed_total,
    events_loaded_total,
    streams_deleted_total,
)
from aeto.kernel.retry import retry_on_transient_error
from aeto.kernel.serializer import JsonSerializer, Record
from aeto.kernel.stream import Commit, Stream

logger = get_logger(__name__)


def stream_id(name: str) -> str:
    """Stream id for a namespaced key (ns/name becomes ns-name)"""
    return _stream_id(name)


class Repository:
    """Event stream repository over a chunk store"""

    def __init__(self, store: ChunkStore, serializer: JsonSerializer) -> None:
        self.store = store
        self.serializer = serializer

    def get(self, stream_id: str) -> Stream:
        """
        Load every chunk of a stream and decode its events

        Raises:
            StreamMismatch: If the store returned a chunk of another stream
            UnboundEventType, EventDecodeError: If any record is unreadable
        """
        with LogOperation(logger, "load_stream", stream_id=stream_id):
            chunks = self._list_chunks(stream_id)
            logger.debug("event stream chunks fetched", chunks=len(chunks))

            commits = []
            for chunk in chunks:
                if chunk.stream_id != stream_id:
                    raise StreamMismatch(stream_id, chunk.stream_id)

                commit = Commit(chunk.id, chunk.stream_version, timestamp=chunk.timestamp)
                for raw in chunk.events:
                    commit.append(
                        self.serializer.unmarshal_event(Record(data=raw.encode("utf-8")))
                    )
                commits.append(commit)

            stream = Stream(stream_id, commits)
            events_loaded_total.inc(stream.length())
            logger.debug("event stream loaded", stream_id=stream_id, version=stream.version())
            return stream

    def save(self, aggregate: Aggregate) -> int:
        """
        Persist the aggregate's pending commit

        Returns:
            Number of events written (0 means nothing was written)
        """
        commit = aggregate.commit()
        if len(commit) == 0:
            logger.debug(
                "0 events to commit",
                aggregate_id=aggregate.id,
                version=aggregate.version,
            )
            return 0

        chunk = EventStreamChunk(
            id=commit.id,
            stream_id=aggregate.id,
            stream_version=commit.sequence,
            timestamp=commit.timestamp,
            events=[
                self.serializer.marshal_event(e).data.decode("utf-8")
                for e in commit.events
            ],
        )

        with LogOperation(logger, "save_stream", stream_id=aggregate.id, chunk=chunk.id):
            self._create_chunk(chunk)

        chunks_written_total.inc()
        for event in commit.events:
            events_committed_total.labels(event_type=event.event_type()).inc()

        logger.info(
            "events committed",
            events=len(commit),
            chunk=chunk.id,
            aggregate_id=aggregate.id,
            version=aggregate.version,
        )
        return len(commit)

    @retry_on_transient_error()
    def _list_chunks(self, stream_id: str) -> list[EventStreamChunk]:
        return self.store.list_chunks(stream_id)

    @retry_on_transient_error()
    def _create_chunk(self, chunk: EventStreamChunk) -> None:
        self.store.create_chunk(chunk)

    @retry_on_transient_error()
    def _delete_chunks(self, stream_id: str) -> int:
        return self.store.delete_chunks(stream_id)

    def delete(self, stream: Stream) -> None:
        """Delete every chunk stored under the stream id, including chunks written after it was loaded"""
        with LogOperation(logger, "delete_stream", stream_id=stream.id):
            deleted = self._delete_chunks(stream.id)
            logger.debug("event stream chunks deleted", chunks=deleted, loaded=len(stream.commits()))
        streams_deleted_total.inc()
