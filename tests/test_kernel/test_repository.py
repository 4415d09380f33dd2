"""
Tests for the stream repository and chunk stores

Verifies the persistence contract:
- One chunk per non-empty commit, named after the version it advances to
- Nothing written for an aggregate without pending events
- Chunks from other streams are rejected on load
- Delete removes every chunk and tolerates chunks already gone
"""

import sqlite3

import pytest

from aeto.kernel.chunk_store import EventStreamChunk, InMemoryChunkStore, SQLiteChunkStore
from aeto.kernel.errors import ChunkAlreadyExists, ChunkStoreError, ResourceNotFound, StreamMismatch
from aeto.kernel.repository import Repository, stream_id
from aeto.kernel.serializer import JsonSerializer
from aeto.kernel.time import TestTimeProvider
from aeto.tenant.aggregate import TenantAggregate


def new_tenant(test_time: TestTimeProvider, sid: str = "default-acme") -> TenantAggregate:
    aggregate = TenantAggregate.new(sid, time_provider=test_time)
    aggregate.create("acme", "default")
    aggregate.set_display_name("Acme Inc")
    return aggregate


def test_stream_id_replaces_separator() -> None:
    assert stream_id("default/acme") == "default-acme"


def test_save_writes_one_chunk_per_commit(
    repository: Repository, chunk_store: InMemoryChunkStore, test_time: TestTimeProvider
) -> None:
    aggregate = new_tenant(test_time)

    assert repository.save(aggregate) == 2

    chunks = chunk_store.list_chunks("default-acme")
    assert len(chunks) == 1
    assert chunks[0].id == "default-acme-stream-chunk-000001"
    assert chunks[0].stream_version == 1
    assert chunks[0].timestamp == "2025-01-15T12:00:00.000000Z"
    assert len(chunks[0].events) == 2


def test_save_without_pending_events_writes_nothing(
    repository: Repository, chunk_store: InMemoryChunkStore, test_time: TestTimeProvider
) -> None:
    aggregate = new_tenant(test_time)
    repository.save(aggregate)

    assert repository.save(aggregate) == 0
    assert len(chunk_store) == 1

    reloaded = TenantAggregate.from_stream(repository.get("default-acme"), time_provider=test_time)
    reloaded.set_display_name("Acme Inc")
    assert repository.save(reloaded) == 0
    assert len(chunk_store) == 1


def test_get_rebuilds_stream_in_sequence_order(
    repository: Repository, test_time: TestTimeProvider
) -> None:
    aggregate = new_tenant(test_time)
    repository.save(aggregate)

    aggregate = TenantAggregate.from_stream(repository.get("default-acme"), time_provider=test_time)
    aggregate.set_display_name("Acme Corp")
    repository.save(aggregate)

    stream = repository.get("default-acme")
    assert len(stream) == 2
    assert [e.sequence for e in stream.events()] == [1, 2, 3]
    assert stream.commits()[-1].id == "default-acme-stream-chunk-000002"

    state = TenantAggregate.from_stream(stream).state
    assert state.tenant_display_name == "Acme Corp"


def test_get_unknown_stream_is_empty(repository: Repository) -> None:
    stream = repository.get("nobody")
    assert stream.length() == 0
    assert stream.id == "nobody"


def test_get_rejects_chunks_of_another_stream(serializer: JsonSerializer) -> None:
    class LeakyStore(InMemoryChunkStore):
        def list_chunks(self, stream_id: str) -> list[EventStreamChunk]:
            return [EventStreamChunk(id="x", stream_id="other", stream_version=1)]

    repository = Repository(LeakyStore(), serializer)

    with pytest.raises(StreamMismatch) as exc_info:
        repository.get("default-acme")
    assert "expected=default-acme" in str(exc_info.value)
    assert "actual=other" in str(exc_info.value)


def test_delete_removes_every_chunk(
    repository: Repository, chunk_store: InMemoryChunkStore, test_time: TestTimeProvider
) -> None:
    aggregate = new_tenant(test_time)
    repository.save(aggregate)
    aggregate.set_display_name("Acme Corp")
    repository.save(aggregate)

    stream = repository.get("default-acme")
    chunk_store.delete_chunk("default-acme", stream.commits()[0].id)

    repository.delete(stream)

    assert len(chunk_store) == 0
    assert repository.get("default-acme").length() == 0


def test_delete_removes_chunks_written_after_load(
    repository: Repository, chunk_store: InMemoryChunkStore, test_time: TestTimeProvider
) -> None:
    aggregate = new_tenant(test_time)
    repository.save(aggregate)
    stream = repository.get("default-acme")

    aggregate.set_display_name("Acme Corp")
    repository.save(aggregate)
    repository.delete(stream)

    assert chunk_store.list_streams() == []


def test_in_memory_store_is_append_only() -> None:
    store = InMemoryChunkStore()
    chunk = EventStreamChunk(id="c1", stream_id="s1", stream_version=1)
    store.create_chunk(chunk)

    with pytest.raises(ChunkAlreadyExists):
        store.create_chunk(chunk)
    with pytest.raises(ResourceNotFound):
        store.delete_chunk("s1", "missing")


class TestSQLiteChunkStore:
    """SQLite chunk store keeps the same contract as the in-memory one"""

    def test_create_and_list(self, sqlite_store: SQLiteChunkStore) -> None:
        sqlite_store.create_chunk(
            EventStreamChunk(id="c1", stream_id="s1", stream_version=1, events=['{"Type":"X","Data":{}}'])
        )
        sqlite_store.create_chunk(EventStreamChunk(id="c2", stream_id="s1", stream_version=2))
        sqlite_store.create_chunk(EventStreamChunk(id="c1", stream_id="s2", stream_version=1))

        chunks = sqlite_store.list_chunks("s1")
        assert sorted(c.id for c in chunks) == ["c1", "c2"]
        assert next(c for c in chunks if c.id == "c1").events == ['{"Type":"X","Data":{}}']
        assert sqlite_store.list_streams() == ["s1", "s2"]
        assert sqlite_store.count_chunks() == 3

    def test_duplicate_chunk_rejected(self, sqlite_store: SQLiteChunkStore) -> None:
        chunk = EventStreamChunk(id="c1", stream_id="s1", stream_version=1)
        sqlite_store.create_chunk(chunk)

        with pytest.raises(ChunkAlreadyExists):
            sqlite_store.create_chunk(chunk)

    def test_delete(self, sqlite_store: SQLiteChunkStore) -> None:
        sqlite_store.create_chunk(EventStreamChunk(id="c1", stream_id="s1", stream_version=1))
        sqlite_store.create_chunk(EventStreamChunk(id="c2", stream_id="s1", stream_version=2))

        sqlite_store.delete_chunk("s1", "c1")
        with pytest.raises(ResourceNotFound):
            sqlite_store.delete_chunk("s1", "c1")

        assert sqlite_store.delete_chunks("s1") == 1
        assert sqlite_store.list_chunks("s1") == []

    def test_corrupt_row_is_a_store_error(self, sqlite_store: SQLiteChunkStore) -> None:
        with sqlite3.connect(sqlite_store.db_path) as conn:
            conn.execute(
                "INSERT INTO chunks (stream_id, chunk_id, stream_version, timestamp, events_json) "
                "VALUES ('s1', 'c1', 1, '', 'not json')"
            )

        with pytest.raises(ChunkStoreError):
            sqlite_store.list_chunks("s1")

    def test_repository_over_sqlite(
        self, sqlite_store: SQLiteChunkStore, serializer: JsonSerializer, test_time: TestTimeProvider
    ) -> None:
        repository = Repository(sqlite_store, serializer)
        repository.save(new_tenant(test_time))

        stream = repository.get("default-acme")
        assert stream.length() == 2
        assert TenantAggregate.from_stream(stream).state.tenant_name == "acme"

        repository.delete(stream)
        assert sqlite_store.list_streams() == []
