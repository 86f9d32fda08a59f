"""
Core Module - Clock.

============================================================
RESPONSIBILITY
============================================================
UTC time for the journal.

- Default timestamps of journal rows (now_utc)
- Freshness of price cache entries (ClockProtocol)
- Timestamp normalization (ensure_utc)

MockClock lets cache expiry be tested without sleeping.

============================================================
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


class ClockProtocol(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        pass

    def timestamp(self) -> float:
        """Current time as Unix seconds."""
        return self.now().timestamp()


class SystemClock(ClockProtocol):

    def now(self) -> datetime:
        return now_utc()


class MockClock(ClockProtocol):
    """
    Clock frozen at a given instant.

    Time moves only through advance().
    """

    def __init__(self, start: Optional[datetime] = None):
        self._current = ensure_utc(start) if start else now_utc()
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._current

    def advance(self, seconds: float = 0, **delta) -> None:
        """Move forward; extra keywords go to timedelta (minutes=, hours=...)."""
        with self._lock:
            self._current += timedelta(seconds=seconds, **delta)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
    "ensure_utc",
    "now_utc",
]
