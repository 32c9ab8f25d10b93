# File: src/parkwash/infrastructure/locking.py
"""
Named locks for check-then-insert sequences

The services serialize their check-then-write sections by key:
1. "stay-plate:<PLATE>" - the one-active-stay-per-plate check
2. "stay:<id>" - closing a stay
3. "reservation:<date>:<type>" - the reservation capacity count
4. "reservation-status:<id>" - reservation status changes
5. "wash:<id>" - wash item transitions
6. "zone-name:<NAME>" - the unique zone name check
7. "zone-spaces:<id>" - space numbering within a zone

Providers:
- InMemoryLockProvider - one threading.Lock per key, single process
- RedisLockProvider - redis-py Lock objects, shared by several processes

Different keys never contend. Acquisition failures are raised unchanged.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Iterator, Optional
import logging
import threading

import redis


class LockProvider(ABC):
    """Interface for keyed mutual exclusion"""

    def __init__(self):
        self._logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        """Hold the lock for key for the duration of the with-block"""
        pass


class InMemoryLockProvider(LockProvider):
    """Per-key threading locks, created on first use"""

    def __init__(self, timeout_seconds: Optional[float] = None):
        super().__init__()
        self.timeout_seconds = timeout_seconds
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            if key not in self._locks:
                self._locks[key] = threading.Lock()
            return self._locks[key]

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        lock = self._lock_for(key)
        timeout = self.timeout_seconds if self.timeout_seconds is not None else -1
        if not lock.acquire(timeout=timeout):
            raise TimeoutError(f"Could not acquire lock '{key}' within {self.timeout_seconds}s")
        self._logger.debug(f"Acquired lock {key}")
        try:
            yield
        finally:
            lock.release()
            self._logger.debug(f"Released lock {key}")


class RedisLockProvider(LockProvider):
    """
    Distributed locks backed by redis-py
    Each lock expires after lock_timeout_seconds
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379",
        lock_timeout_seconds: float = 10,
        blocking_timeout_seconds: Optional[float] = None,
        prefix: str = "parkwash:lock:",
        client: Optional[redis.Redis] = None,
        **kwargs
    ):
        super().__init__()
        self.redis_url = redis_url
        self.lock_timeout_seconds = lock_timeout_seconds
        self.blocking_timeout_seconds = (
            blocking_timeout_seconds if blocking_timeout_seconds is not None else lock_timeout_seconds
        )
        self.prefix = prefix
        self.redis_client = client or redis.Redis.from_url(redis_url, **kwargs)

    @contextmanager
    def lock(self, key: str) -> Iterator[None]:
        name = f"{self.prefix}{key}"
        redis_lock = self.redis_client.lock(
            name,
            timeout=self.lock_timeout_seconds,
            blocking_timeout=self.blocking_timeout_seconds
        )
        if not redis_lock.acquire():
            raise redis.exceptions.LockError(f"Unable to acquire lock '{name}'")
        self._logger.debug(f"Acquired redis lock {name}")
        try:
            yield
        finally:
            redis_lock.release()
            self._logger.debug(f"Released redis lock {name}")

    def close(self):
        self.redis_client.close()
