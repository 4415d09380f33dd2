"""
Structured logging for aeto controllers.

Every reconcile pass binds a short correlation id ("cid") into structlog's
context variables, so the log lines of one pass can be followed across the
repository, generator and reconcilers.

Fun fact: Correlation IDs were popularized by Google's Dapper tracing system.
Controllers need them just as much - the same tenant is reconciled over and
over, and without an id every pass looks the same.
"""

import logging
import secrets
import sys
import time
from typing import Any

import structlog

# Tracebacks go to console output only; JSON logs carry the error string
_include_tracebacks = True

# Fields that may carry secret material from rendered manifests
REDACTED_FIELDS = frozenset({"data", "stringData", "password", "token", "secret", "api_key", "private_key"})


def bind_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation id (a fresh 7 character one by default) to the current context"""
    cid = correlation_id or secrets.token_hex(4)[:7]
    structlog.contextvars.bind_contextvars(cid=cid)
    return cid


def get_correlation_id() -> str:
    return structlog.contextvars.get_contextvars().get("cid", "")


def configure_logging(*, json_output: bool = False, log_level: str = "INFO") -> None:
    """
    Configure structlog on top of the standard logging module.

    Logs always go to stderr so commands that print JSON keep stdout clean.

    Args:
        json_output: JSON lines for the operator deployment; console lines otherwise
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    global _include_tracebacks
    _include_tracebacks = not json_output

    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=getattr(logging, log_level.upper()))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if json_output:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors += [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def redact_context(context: dict[str, Any]) -> dict[str, Any]:
    """
    Redact fields that may hold manifest secrets.

    Example:
        >>> redact_context({"token": "abc", "tenant": "acme"})
        {"token": "***REDACTED***", "tenant": "acme"}
    """
    return {k: "***REDACTED***" if k in REDACTED_FIELDS else v for k, v in context.items()}


class LogOperation:
    """
    Logs the start, end and duration of a store or reconcile operation.

    Failures are logged at error level and re-raised.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger, operation: str, **context: Any):
        self.logger = logger.bind(operation=operation, **redact_context(context))
        self.operation = operation
        self.start_time: float = 0.0

    def __enter__(self) -> "LogOperation":
        self.start_time = time.perf_counter()
        self.logger.debug(f"{self.operation} started")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration_ms = round((time.perf_counter() - self.start_time) * 1000, 2)
        if exc_type is None:
            self.logger.debug(f"{self.operation} completed", duration_ms=duration_ms)
        else:
            self.logger.error(
                f"{self.operation} failed",
                duration_ms=duration_ms,
                error=str(exc_val),
                exc_info=_include_tracebacks,
            )
