from __future__ import annotations

from typing import Protocol


class StateStorePort(Protocol):
    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        ...

    def get(self, key: str) -> str | None:
        ...

    def delete(self, key: str) -> None:
        ...

    def pop(self, key: str) -> str | None:
        """Atomically returns the live value for ``key`` and removes it."""
        ...
