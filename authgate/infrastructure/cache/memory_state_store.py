from __future__ import annotations

from threading import Lock
import time
from typing import Callable

from authgate.application.ports.state_store_port import StateStorePort


class InMemoryStateStore(StateStorePort):
    """Process-local key/value store with per-key TTL.

    Suitable for a single worker. Deployments with several workers should use
    the SQL-backed store so every worker sees the same state.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._items: dict[str, tuple[float, str]] = {}
        self._lock = Lock()

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        expires_at = self._clock() + ttl_seconds
        with self._lock:
            self._purge_expired()
            self._items[key] = (expires_at, value)

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._live_value(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._items.pop(key, None)

    def pop(self, key: str) -> str | None:
        with self._lock:
            value = self._live_value(key)
            self._items.pop(key, None)
            return value

    def _live_value(self, key: str) -> str | None:
        cached = self._items.get(key)
        if cached is None:
            return None
        expires_at, value = cached
        if expires_at <= self._clock():
            self._items.pop(key, None)
            return None
        return value

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._items.items() if expires_at <= now]
        for key in expired:
            del self._items[key]
