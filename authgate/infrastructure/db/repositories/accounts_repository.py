from __future__ import annotations

import logging

from sqlalchemy import DateTime, bindparam, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authgate.application.ports.users_port import UsersPort
from authgate.domain.entities.user import LocalUser
from authgate.domain.exceptions import PersistenceFailure, UniqueConstraintViolation
from authgate.infrastructure.db.mappers.accounts_mapper import (
    map_local_user_to_params,
    map_row_to_local_user,
)


logger = logging.getLogger(__name__)

_USER_COLUMNS = "id, email, display_name, picture_url, auth_provider, password_hash, created_at, last_login_at"


def _statement(sql: str, *timestamp_params: str):
    return text(sql).bindparams(
        *(bindparam(name, type_=DateTime(timezone=True)) for name in timestamp_params)
    )


class SqlAccountsRepository(UsersPort):
    def __init__(self, engine):
        self._engine = engine

    def find_user_by_email(self, *, email: str) -> LocalUser | None:
        sql = f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE lower(email) = :email
            LIMIT 1
        """
        try:
            with self._engine.connect() as conn:
                row = conn.execute(text(sql), {"email": email.lower()}).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("accounts_repository: find_by_email_failed error=%s", exc.__class__.__name__)
            raise PersistenceFailure("User store unavailable.") from exc
        if row is None:
            return None
        return map_row_to_local_user(row)

    def find_user_by_id(self, *, user_id: str) -> LocalUser | None:
        sql = f"""
            SELECT {_USER_COLUMNS}
            FROM users
            WHERE id = :user_id
            LIMIT 1
        """
        try:
            with self._engine.connect() as conn:
                row = conn.execute(text(sql), {"user_id": user_id}).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("accounts_repository: find_by_id_failed error=%s", exc.__class__.__name__)
            raise PersistenceFailure("User store unavailable.") from exc
        if row is None:
            return None
        return map_row_to_local_user(row)

    def insert_user(self, user: LocalUser) -> LocalUser:
        sql = f"""
            INSERT INTO users (
                id, email, display_name, picture_url, auth_provider, password_hash, created_at, last_login_at
            ) VALUES (
                :id, :email, :display_name, :picture_url, :auth_provider, :password_hash, :created_at, :last_login_at
            )
            RETURNING {_USER_COLUMNS}
        """
        try:
            with self._engine.begin() as conn:
                row = conn.execute(
                    _statement(sql, "created_at", "last_login_at"),
                    map_local_user_to_params(user),
                ).mappings().one()
        except IntegrityError as exc:
            raise UniqueConstraintViolation(f"User with email {user.email} already exists.") from exc
        except SQLAlchemyError as exc:
            logger.error("accounts_repository: insert_failed error=%s", exc.__class__.__name__)
            raise PersistenceFailure("User store unavailable.") from exc
        return map_row_to_local_user(row)

    def update_user(self, user: LocalUser) -> LocalUser:
        sql = f"""
            UPDATE users
            SET display_name = :display_name,
                picture_url = :picture_url,
                auth_provider = :auth_provider,
                password_hash = :password_hash,
                last_login_at = :last_login_at
            WHERE id = :id
            RETURNING {_USER_COLUMNS}
        """
        try:
            with self._engine.begin() as conn:
                row = conn.execute(
                    _statement(sql, "last_login_at"),
                    map_local_user_to_params(user),
                ).mappings().first()
        except SQLAlchemyError as exc:
            logger.error("accounts_repository: update_failed error=%s", exc.__class__.__name__)
            raise PersistenceFailure("User store unavailable.") from exc
        if row is None:
            raise PersistenceFailure(f"User {user.id} not found for update.")
        return map_row_to_local_user(row)
