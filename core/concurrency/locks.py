"""
POS Core Concurrency — Keyed Lock Registry
============================================
Per-aggregate mutual exclusion for read-modify-write cycles.

Rules:
- One lock per key (order id); different keys never contend
- Locks are reference-counted and discarded when no holder remains
- Thread-safe; in-process only (cross-process safety comes from
  the repository's version check)
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional


class _KeyedLock:
    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class KeyedLockRegistry:
    """
    Registry of locks keyed by aggregate id.

    Usage:
        with registry.hold(order_id):
            order = repository.find_by_id(...)
            ...
            repository.update(...)
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, _KeyedLock] = {}

    def _checkout(self, key: str) -> _KeyedLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyedLock()
                self._locks[key] = entry
            entry.holders += 1
            return entry

    def _release(self, key: str, entry: _KeyedLock) -> None:
        with self._guard:
            entry.holders -= 1
            if entry.holders == 0 and self._locks.get(key) is entry:
                del self._locks[key]

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold the lock for `key` for the duration of the block.

        Raises TimeoutError if `timeout` elapses before the lock is acquired.
        """
        entry = self._checkout(key)
        acquired = False
        try:
            acquired = entry.lock.acquire(timeout=-1 if timeout is None else timeout)
            if not acquired:
                raise TimeoutError(f"Timed out waiting for lock on '{key}'.")
            yield
        finally:
            if acquired:
                entry.lock.release()
            self._release(key, entry)

    def is_held(self, key: str) -> bool:
        with self._guard:
            entry = self._locks.get(key)
            return entry is not None and entry.lock.locked()

    @property
    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)
