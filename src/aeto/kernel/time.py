"""
Time provider abstraction for deterministic testing

Events and commits carry timestamps. Making "now" injectable keeps
replay, status conditions and tests fully reproducible.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class TimeProvider(Protocol):
    """Protocol for time providers - allows deterministic testing"""

    def now(self) -> datetime:
        """Return current UTC datetime"""
        ...


class RealTimeProvider:
    """Production time provider using system clock"""

    def now(self) -> datetime:
        """Return current UTC time from system clock"""
        return datetime.now(timezone.utc)


class TestTimeProvider:
    """
    Controllable time provider for deterministic tests

    Allows tests to freeze time and advance it between reconcile passes.
    """

    __test__ = False  # not a pytest test class

    def __init__(self, initial_time: datetime | None = None) -> None:
        self._current_time = initial_time or datetime(1970, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        """Return current test time"""
        return self._current_time

    def set_time(self, dt: datetime) -> None:
        """Set current time to specific value"""
        self._current_time = dt

    def advance_seconds(self, seconds: int) -> None:
        """Advance time by specified seconds"""
        self._current_time += timedelta(seconds=seconds)


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as an RFC3339 UTC timestamp with microseconds"""
    return dt.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


# Global default time provider
default_time_provider: TimeProvider = RealTimeProvider()
