from __future__ import annotations

import logging
import secrets

from authgate.application.ports.state_store_port import StateStorePort


logger = logging.getLogger(__name__)

STATE_KEY_PREFIX = "oauth_state:"
STATE_TOKEN_BYTES = 32


def state_key(session_id: str) -> str:
    return f"{STATE_KEY_PREFIX}{session_id}"


class CsrfStateStore:
    """Issues anti-forgery state values bound to a client session.

    A value is stored once per session and is removed on the first validation
    attempt, whatever its outcome, so it can never validate twice.
    """

    def __init__(self, *, store: StateStorePort, ttl_seconds: int):
        self._store = store
        self._ttl_seconds = ttl_seconds

    def issue(self, session_id: str) -> str:
        token = secrets.token_urlsafe(STATE_TOKEN_BYTES)
        self._store.set(state_key(session_id), token, self._ttl_seconds)
        return token

    def validate_and_consume(self, session_id: str, candidate: str | None) -> bool:
        if not session_id:
            return False

        stored = self._store.pop(state_key(session_id))
        if stored is None:
            logger.warning("csrf_state: missing_or_expired session=%s", _short(session_id))
            return False
        if not candidate or not secrets.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8")):
            logger.warning("csrf_state: mismatch session=%s", _short(session_id))
            return False
        return True


def _short(session_id: str) -> str:
    return session_id[:8]
