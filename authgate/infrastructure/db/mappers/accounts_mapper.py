from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from authgate.domain.entities.user import LocalUser


def _as_str(value: Any) -> str:
    return str(value)


def _as_utc(value: Any) -> datetime:
    # SQLite hands timestamps back as ISO strings; Postgres as datetimes.
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def map_row_to_local_user(row: Mapping[str, Any]) -> LocalUser:
    return LocalUser(
        id=_as_str(row["id"]),
        email=row["email"],
        display_name=row["display_name"],
        picture_url=row.get("picture_url"),
        auth_provider=row["auth_provider"],
        password_hash=row.get("password_hash"),
        created_at=_as_utc(row["created_at"]),
        last_login_at=_as_utc(row["last_login_at"]),
    )


def map_local_user_to_params(user: LocalUser) -> dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "display_name": user.display_name,
        "picture_url": user.picture_url,
        "auth_provider": user.auth_provider,
        "password_hash": user.password_hash,
        "created_at": user.created_at,
        "last_login_at": user.last_login_at,
    }
