"""Per-key write serialization."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class _KeyLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """Hand out one lock per key so writers for different keys never contend.

    An entry lives only while some caller holds or waits on it, so the
    registry does not grow with every session ever seen.
    """

    def __init__(self) -> None:
        self._locks: dict[str, _KeyLock] = {}
        self._guard = threading.Lock()

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = _KeyLock()
                self._locks[key] = entry
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def __len__(self) -> int:
        """Number of keys currently held or awaited."""
        with self._guard:
            return len(self._locks)


__all__ = ["KeyedLocks"]
