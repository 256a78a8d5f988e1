from __future__ import annotations

import logging

from passlib.context import CryptContext
from passlib.exc import UnknownHashError

from authgate.application.ports.password_hasher_port import PasswordHasherPort


logger = logging.getLogger(__name__)


class PasswordHasher(PasswordHasherPort):
    def __init__(self):
        self._ctx = CryptContext(
            schemes=["argon2", "bcrypt"],
            deprecated="auto",
        )

    def hash(self, plain_password: str) -> str:
        return self._ctx.hash(plain_password)

    def verify(self, plain_password: str, password_hash: str) -> bool:
        verified, _ = self.verify_and_update(plain_password, password_hash)
        return verified

    def verify_and_update(self, plain_password: str, password_hash: str) -> tuple[bool, str | None]:
        try:
            verified, replacement_hash = self._ctx.verify_and_update(plain_password, password_hash)
        except (UnknownHashError, ValueError, TypeError):
            # Unrecognised or corrupt stored hash never verifies.
            logger.warning("password_hasher: unusable_stored_hash")
            return False, None
        return bool(verified), replacement_hash
