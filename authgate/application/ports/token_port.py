from __future__ import annotations

from datetime import datetime
from typing import Protocol

from authgate.application.dto.auth import SessionToken, SessionTokenClaims
from authgate.domain.entities.user import LocalUser


class TokenPort(Protocol):
    def issue(self, *, user: LocalUser, now: datetime) -> SessionToken:
        ...

    def decode(self, *, token: str) -> SessionTokenClaims:
        ...
