"""
Pytest configuration and shared fixtures

Fun fact: The name "conftest" comes from pytest's configuration testing
framework. Files named conftest.py are automatically discovered and their
fixtures are available to all tests in the same directory and subdirectories!
"""

import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import pytest

from aeto.kernel.chunk_store import InMemoryChunkStore, SQLiteChunkStore
from aeto.kernel.config import OperatorConfig
from aeto.kernel.repository import Repository
from aeto.kernel.serializer import JsonSerializer
from aeto.kernel.time import TestTimeProvider
from aeto.tenant.events import tenant_events
from aeto.tenant.generator import ResourceGenerator
from tests.helpers import FakeCluster


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    yield db_path

    # Cleanup (WAL mode leaves sidecar files next to the database)
    for path in (db_path, Path(f"{db_path}-wal"), Path(f"{db_path}-shm")):
        if path.exists():
            path.unlink()


@pytest.fixture
def sqlite_store(temp_db: Path) -> SQLiteChunkStore:
    """Provide a fresh SQLite chunk store for each test"""
    return SQLiteChunkStore(temp_db)


@pytest.fixture
def chunk_store() -> InMemoryChunkStore:
    return InMemoryChunkStore()


@pytest.fixture
def serializer() -> JsonSerializer:
    """Serializer with every tenant event registered"""
    return JsonSerializer(*tenant_events())


@pytest.fixture
def repository(chunk_store: InMemoryChunkStore, serializer: JsonSerializer) -> Repository:
    return Repository(chunk_store, serializer)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """
    Provide a controllable time provider for deterministic tests

    Default time: 2025-01-15 12:00:00 UTC
    """
    return TestTimeProvider(datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config() -> OperatorConfig:
    return OperatorConfig(namespace="aeto")


@pytest.fixture
def cluster() -> FakeCluster:
    """Provide an empty in-memory cluster"""
    return FakeCluster()


@pytest.fixture
def generator(cluster: FakeCluster, config: OperatorConfig) -> ResourceGenerator:
    return ResourceGenerator(cluster, config)
