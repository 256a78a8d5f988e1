from __future__ import annotations

from typing import Protocol

from authgate.domain.entities.user import LocalUser


class UsersPort(Protocol):
    def find_user_by_email(self, *, email: str) -> LocalUser | None:
        ...

    def find_user_by_id(self, *, user_id: str) -> LocalUser | None:
        ...

    def insert_user(self, user: LocalUser) -> LocalUser:
        """Raises UniqueConstraintViolation when the email already exists."""
        ...

    def update_user(self, user: LocalUser) -> LocalUser:
        ...
