"""
Chunk stores - the append log backing the repository

Each commit of a stream is persisted as one chunk tagged with its stream
id. Chunks are created and deleted, never updated in place.

Fun fact: The append-only log pattern is one of the oldest database techniques,
dating back to the 1960s IMS database. Controllers rebuild their world from it
on every pass.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Protocol

from pydantic import BaseModel, Field

from aeto.kernel.errors import ChunkAlreadyExists, ChunkStoreError, ResourceNotFound
from aeto.kernel.retry import retry_on_sqlite_lock


class EventStreamChunk(BaseModel):
    """One persisted commit: an ordered list of serialized events"""

    id: str = Field(..., min_length=1, description="Chunk (commit) id")
    stream_id: str = Field(..., min_length=1, description="Stream the chunk belongs to")
    stream_version: int = Field(..., ge=0, description="Stream version the commit advances to")
    timestamp: str = Field(default="", description="Commit timestamp")
    events: list[str] = Field(default_factory=list, description="Serialized event records")


class ChunkStore(Protocol):
    """Operations the repository needs from a backing store"""

    def list_chunks(self, stream_id: str) -> list[EventStreamChunk]:
        ...

    def create_chunk(self, chunk: EventStreamChunk) -> None:
        ...

    def delete_chunk(self, stream_id: str, chunk_id: str) -> None:
        ...

    def delete_chunks(self, stream_id: str) -> int:
        ...

    def list_streams(self) -> list[str]:
        ...


class InMemoryChunkStore:
    """
    Dict backed chunk store for tests and dry runs

    list_chunks makes no ordering promise, just like a real resource store.
    """

    def __init__(self) -> None:
        self._chunks: dict[tuple[str, str], EventStreamChunk] = {}

    def list_chunks(self, stream_id: str) -> list[EventStreamChunk]:
        return [c for (sid, _), c in self._chunks.items() if sid == stream_id]

    def create_chunk(self, chunk: EventStreamChunk) -> None:
        key = (chunk.stream_id, chunk.id)
        if key in self._chunks:
            raise ChunkAlreadyExists(chunk.stream_id, chunk.id)
        self._chunks[key] = chunk.model_copy(deep=True)

    def delete_chunk(self, stream_id: str, chunk_id: str) -> None:
        if self._chunks.pop((stream_id, chunk_id), None) is None:
            raise ResourceNotFound("EventStreamChunk", chunk_id)

    def delete_chunks(self, stream_id: str) -> int:
        keys = [k for k in self._chunks if k[0] == stream_id]
        for key in keys:
            del self._chunks[key]
        return len(keys)

    def list_streams(self) -> list[str]:
        return sorted({sid for sid, _ in self._chunks})

    def __len__(self) -> int:
        return len(self._chunks)


class SQLiteChunkStore:
    """
    SQLite-based chunk store with append-only semantics

    Uses WAL (Write-Ahead Logging) mode for crash safety and good
    concurrent read performance.

    Schema:
    - chunks table keyed by (stream_id, chunk_id)
    - events stored as a JSON array of serialized records
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self._initialize_schema()

    def _initialize_schema(self) -> None:
        """Create tables and indices if they don't exist"""
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS chunks (
                    stream_id TEXT NOT NULL,
                    chunk_id TEXT NOT NULL,
                    stream_version INTEGER NOT NULL,
                    timestamp TEXT NOT NULL,
                    events_json TEXT NOT NULL,

                    PRIMARY KEY (stream_id, chunk_id)
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_chunks_stream "
                "ON chunks(stream_id, stream_version)"
            )
            conn.commit()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """
        Context manager for database connections

        Ensures connections are properly closed.
        """
        conn = sqlite3.connect(str(self.db_path))
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    @retry_on_sqlite_lock()
    def list_chunks(self, stream_id: str) -> list[EventStreamChunk]:
        with self._connect() as conn:
            cursor = conn.execute(
                """
                SELECT stream_id, chunk_id, stream_version, timestamp, events_json
                FROM chunks
                WHERE stream_id = ?
            """,
                (stream_id,),
            )
            return [self._row_to_chunk(row) for row in cursor.fetchall()]

    @retry_on_sqlite_lock()
    def create_chunk(self, chunk: EventStreamChunk) -> None:
        """
        Insert a new chunk

        Raises:
            ChunkAlreadyExists: If a chunk with the same id is already stored
            ChunkStoreError: On other database errors
        """
        with self._connect() as conn:
            try:
                conn.execute(
                    """
                    INSERT INTO chunks (
                        stream_id, chunk_id, stream_version, timestamp, events_json
                    ) VALUES (?, ?, ?, ?, ?)
                """,
                    (
                        chunk.stream_id,
                        chunk.id,
                        chunk.stream_version,
                        chunk.timestamp,
                        json.dumps(chunk.events),
                    ),
                )
                conn.commit()
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ChunkAlreadyExists(chunk.stream_id, chunk.id) from e

    @retry_on_sqlite_lock()
    def delete_chunk(self, stream_id: str, chunk_id: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM chunks WHERE stream_id = ? AND chunk_id = ?",
                (stream_id, chunk_id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise ResourceNotFound("EventStreamChunk", chunk_id)

    @retry_on_sqlite_lock()
    def delete_chunks(self, stream_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM chunks WHERE stream_id = ?", (stream_id,))
            conn.commit()
            return cursor.rowcount

    def list_streams(self) -> list[str]:
        """Distinct stream ids in the store, sorted"""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT DISTINCT stream_id FROM chunks ORDER BY stream_id ASC"
            )
            return [row[0] for row in cursor.fetchall()]

    def count_chunks(self) -> int:
        with self._connect() as conn:
            cursor = conn.execute("SELECT COUNT(*) FROM chunks")
            return cursor.fetchone()[0]

    def _row_to_chunk(self, row: sqlite3.Row) -> EventStreamChunk:
        """Convert SQLite row to chunk"""
        try:
            events = json.loads(row["events_json"])
        except ValueError as e:
            raise ChunkStoreError(f"corrupt chunk {row['chunk_id']}: {e}") from e
        return EventStreamChunk(
            id=row["chunk_id"],
            stream_id=row["stream_id"],
            stream_version=row["stream_version"],
            timestamp=row["timestamp"],
            events=events,
        )
