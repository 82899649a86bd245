"""Keyed mutual exclusion for per-resource critical sections."""

import threading
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLocks:
    """Hands out one lock per key, created on first use.

    Holding the lock for one key never blocks callers working on another key.
    """

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()  # Protects the lock registry only

    def _lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self._lock_for(str(key))
        with lock:
            yield
