# File: src/parkwash/domain/clock.py
"""
Injectable time source

Business logic never reads the wall clock directly; services receive a Clock
so tests can pin "now" and move it forward.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
import threading


class Clock(ABC):
    """Interface for anything that can tell the current time"""

    @abstractmethod
    def now(self) -> datetime:
        pass


class SystemClock(Clock):
    """Local wall-clock time, naive like the stored timestamps"""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock(Clock):
    """
    Clock that only moves when told to
    Thread-safe so concurrent tests can share one instance
    """

    def __init__(self, start: datetime):
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta keyword arguments, e.g. advance(minutes=90)"""
        with self._lock:
            self._now = self._now + timedelta(**kwargs)
            return self._now
