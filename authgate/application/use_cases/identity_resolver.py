from __future__ import annotations

import logging
from dataclasses import replace
from uuid import uuid4

from authgate.application.ports.password_hasher_port import PasswordHasherPort
from authgate.application.ports.users_port import UsersPort
from authgate.domain.entities.user import ExternalIdentity, LocalUser
from authgate.domain.exceptions import PersistenceFailure, UniqueConstraintViolation

from .auth_common import normalize_email, utcnow


logger = logging.getLogger(__name__)


class IdentityResolver:
    def __init__(self, *, users_port: UsersPort, password_hasher: PasswordHasherPort):
        self._users_port = users_port
        self._password_hasher = password_hasher
        self._dummy_hash: str | None = None

    def resolve_or_create(self, identity: ExternalIdentity) -> LocalUser:
        email = normalize_email(identity.email)
        if not identity.email_verified:
            logger.warning("identity_resolver: unverified_provider_email email=%s provider=%s", email, identity.provider)
        existing = self._users_port.find_user_by_email(email=email)
        if existing is not None:
            return self._apply_login(existing, identity)

        now = utcnow()
        candidate = LocalUser(
            id=str(uuid4()),
            email=email,
            display_name=_display_name(identity, email),
            picture_url=identity.picture_url,
            auth_provider=identity.provider,
            password_hash=None,
            created_at=now,
            last_login_at=now,
        )
        try:
            user = self._users_port.insert_user(candidate)
        except UniqueConstraintViolation:
            # Another request created the row first; fold this login into it.
            logger.info("identity_resolver: create_conflict_retrying_as_update email=%s", email)
            existing = self._users_port.find_user_by_email(email=email)
            if existing is None:
                raise PersistenceFailure("User vanished after unique constraint conflict.")
            return self._apply_login(existing, identity)

        logger.info("identity_resolver: user_created email=%s provider=%s", email, identity.provider)
        return user

    def validate_local_credentials(self, email: str, password: str) -> LocalUser | None:
        user = self._users_port.find_user_by_email(email=normalize_email(email))
        if user is None or user.auth_provider != "local" or not user.password_hash:
            # Unknown and non-local emails pay the same hash cost as a real check.
            self._password_hasher.verify_and_update(password, self._get_dummy_hash())
            return None

        verified, replacement_hash = self._password_hasher.verify_and_update(password, user.password_hash)
        if not verified:
            return None

        updated = replace(
            user,
            last_login_at=utcnow(),
            password_hash=replacement_hash or user.password_hash,
        )
        return self._users_port.update_user(updated)

    def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self._password_hasher.hash(uuid4().hex)
        return self._dummy_hash

    def _apply_login(self, user: LocalUser, identity: ExternalIdentity) -> LocalUser:
        updated = replace(
            user,
            display_name=identity.display_name or user.display_name,
            picture_url=identity.picture_url or user.picture_url,
            auth_provider=identity.provider,
            last_login_at=utcnow(),
        )
        return self._users_port.update_user(updated)


def _display_name(identity: ExternalIdentity, email: str) -> str:
    if identity.display_name and identity.display_name.strip():
        return identity.display_name.strip()
    return email.split("@")[0]
