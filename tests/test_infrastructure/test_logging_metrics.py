"""
Test infrastructure components: logging, metrics, retry, configuration.

These tests verify the operational plumbing around the reconcile passes.
"""

import sqlite3

import pytest

from aeto.kernel.chunk_store import SQLiteChunkStore
from aeto.kernel.config import OperatorConfig
from aeto.kernel.logging import (
    LogOperation,
    bind_correlation_id,
    configure_logging,
    get_correlation_id,
    get_logger,
    redact_context,
)
from aeto.kernel.metrics import (
    chunks_written_total,
    events_committed_total,
    events_loaded_total,
    reconciles_total,
    start_metrics_server,
    streams_deleted_total,
    track_reconcile_duration,
)
from aeto.kernel.repository import Repository
from aeto.kernel.retry import retry_on_sqlite_lock, retry_on_transient_error
from aeto.kernel.serializer import JsonSerializer
from aeto.kernel.time import TestTimeProvider
from aeto.tenant.aggregate import TenantAggregate


class TestLoggingFramework:
    """Test structured logging framework."""

    def test_configure_logging_console(self) -> None:
        """Test logging configuration for console output."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)
        assert logger is not None

    def test_configure_logging_json(self) -> None:
        """Test logging configuration for JSON output."""
        configure_logging(json_output=True, log_level="DEBUG")
        logger = get_logger(__name__)
        assert logger is not None

    def test_correlation_id(self) -> None:
        """Test correlation ID context management."""
        cid = bind_correlation_id()
        assert len(cid) == 7
        assert get_correlation_id() == cid

        bind_correlation_id("abc1234")
        assert get_correlation_id() == "abc1234"

    def test_log_operation_context_manager(self) -> None:
        """Test LogOperation context manager."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)

        with LogOperation(logger, "save_stream", stream_id="default-acme"):
            pass

    def test_log_operation_with_exception(self) -> None:
        """Test LogOperation logs errors and re-raises."""
        configure_logging(json_output=False, log_level="INFO")
        logger = get_logger(__name__)

        with pytest.raises(ValueError):
            with LogOperation(logger, "failing_operation"):
                raise ValueError("Test error")

    def test_redact_context(self) -> None:
        """Secret-looking fields never reach the log."""
        assert redact_context({"token": "abc", "data": {"k": "v"}, "tenant": "acme"}) == {
            "token": "***REDACTED***",
            "data": "***REDACTED***",
            "tenant": "acme",
        }


class TestMetrics:
    """Test Prometheus metrics collection."""

    def test_commit_metrics(self, sqlite_store: SQLiteChunkStore, serializer: JsonSerializer, test_time: TestTimeProvider) -> None:
        """Test committed events and written chunks are counted."""
        configure_logging(json_output=False, log_level="INFO")
        repository = Repository(sqlite_store, serializer)

        before_events = events_committed_total.labels(event_type="TenantCreated")._value.get()
        before_chunks = chunks_written_total._value.get()

        aggregate = TenantAggregate.new("default-acme", time_provider=test_time)
        aggregate.create("acme", "default")
        repository.save(aggregate)

        assert events_committed_total.labels(event_type="TenantCreated")._value.get() == before_events + 1
        assert chunks_written_total._value.get() == before_chunks + 1

    def test_load_and_delete_metrics(
        self, sqlite_store: SQLiteChunkStore, serializer: JsonSerializer, test_time: TestTimeProvider
    ) -> None:
        """Test loaded events and deleted streams are counted."""
        repository = Repository(sqlite_store, serializer)
        aggregate = TenantAggregate.new("default-acme", time_provider=test_time)
        aggregate.create("acme", "default")
        aggregate.set_display_name("Acme Inc")
        repository.save(aggregate)

        before_loaded = events_loaded_total._value.get()
        stream = repository.get("default-acme")
        assert events_loaded_total._value.get() == before_loaded + 2

        before_deleted = streams_deleted_total._value.get()
        repository.delete(stream)
        assert streams_deleted_total._value.get() == before_deleted + 1

    def test_track_reconcile_duration(self) -> None:
        """Test reconcile passes are counted by outcome."""

        @track_reconcile_duration("test")
        def passing() -> str:
            return "ok"

        @track_reconcile_duration("test")
        def failing() -> None:
            raise RuntimeError("boom")

        success_before = reconciles_total.labels(controller="test", status="success")._value.get()
        failure_before = reconciles_total.labels(controller="test", status="failure")._value.get()

        assert passing() == "ok"
        with pytest.raises(RuntimeError):
            failing()

        assert reconciles_total.labels(controller="test", status="success")._value.get() == success_before + 1
        assert reconciles_total.labels(controller="test", status="failure")._value.get() == failure_before + 1

    def test_start_metrics_server(self) -> None:
        """Test the metrics endpoint starts on an ephemeral port."""
        start_metrics_server(0)


class TestRetryLogic:
    """Test retry logic with exponential backoff."""

    def test_retry_decorator(self) -> None:
        """Test retry decorator works."""
        call_count = 0

        @retry_on_sqlite_lock(max_attempts=3, min_wait_ms=1, max_wait_ms=1)
        def failing_function() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 2:
                raise sqlite3.OperationalError("database is locked")
            return "success"

        result = failing_function()
        assert result == "success"
        assert call_count == 2  # Failed once, succeeded on retry

    def test_transient_error_gives_up(self) -> None:
        """Test the last error is re-raised once attempts run out."""
        call_count = 0

        @retry_on_transient_error(max_attempts=2, min_wait_ms=1, max_wait_ms=1)
        def unreachable() -> None:
            nonlocal call_count
            call_count += 1
            raise ConnectionError("cluster unreachable")

        with pytest.raises(ConnectionError):
            unreachable()
        assert call_count == 2

    def test_other_errors_are_not_retried(self) -> None:
        call_count = 0

        @retry_on_transient_error(min_wait_ms=1, max_wait_ms=1)
        def broken() -> None:
            nonlocal call_count
            call_count += 1
            raise ValueError("bad input")

        with pytest.raises(ValueError):
            broken()
        assert call_count == 1


class TestOperatorConfig:
    """Test configuration loading."""

    def test_defaults(self) -> None:
        config = OperatorConfig()
        assert config.namespace == "aeto"
        assert config.reconcile_interval_seconds == 3600
        assert config.max_tenant_resource_sets == 3
        assert not config.is_loggable("Secret")
        assert config.is_loggable("ConfigMap")

    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AETO_OPERATOR_NAMESPACE", "platform")
        monkeypatch.setenv("AETO_RECONCILE_INTERVAL", "60")
        monkeypatch.setenv("AETO_MAX_TENANT_RESOURCE_SETS", "5")

        config = OperatorConfig.from_env()

        assert config.namespace == "platform"
        assert config.reconcile_interval_seconds == 60
        assert config.max_tenant_resource_sets == 5

    def test_invalid_values_are_rejected(self) -> None:
        with pytest.raises(ValueError):
            OperatorConfig(max_tenant_resource_sets=0)
        with pytest.raises(ValueError):
            OperatorConfig(namespace="")
