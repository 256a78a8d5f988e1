from __future__ import annotations

import time
from typing import Callable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from authgate.application.ports.state_store_port import StateStorePort
from authgate.domain.exceptions import PersistenceFailure


class SqlStateStore(StateStorePort):
    """Key/value store with TTL on the ``auth_states`` table.

    Shared by every worker process. ``pop`` relies on ``DELETE ... RETURNING``
    so only one caller ever receives a given value.
    """

    def __init__(self, engine, *, clock: Callable[[], float] = time.time):
        self._engine = engine
        self._clock = clock

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        now = self._clock()
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    text("DELETE FROM auth_states WHERE state_key = :key OR expires_at <= :now"),
                    {"key": key, "now": now},
                )
                conn.execute(
                    text("INSERT INTO auth_states (state_key, value, expires_at) VALUES (:key, :value, :expires_at)"),
                    {"key": key, "value": value, "expires_at": now + ttl_seconds},
                )
        except SQLAlchemyError as exc:
            raise PersistenceFailure("State store unavailable.") from exc

    def get(self, key: str) -> str | None:
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    text("SELECT value, expires_at FROM auth_states WHERE state_key = :key"),
                    {"key": key},
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("State store unavailable.") from exc
        return self._live_value(row)

    def delete(self, key: str) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(text("DELETE FROM auth_states WHERE state_key = :key"), {"key": key})
        except SQLAlchemyError as exc:
            raise PersistenceFailure("State store unavailable.") from exc

    def pop(self, key: str) -> str | None:
        try:
            with self._engine.begin() as conn:
                row = conn.execute(
                    text("DELETE FROM auth_states WHERE state_key = :key RETURNING value, expires_at"),
                    {"key": key},
                ).mappings().first()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("State store unavailable.") from exc
        return self._live_value(row)

    def _live_value(self, row) -> str | None:
        if row is None:
            return None
        if float(row["expires_at"]) <= self._clock():
            return None
        return row["value"]
