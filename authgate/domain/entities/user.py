from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal


AuthProvider = Literal["local", "google"]


@dataclass(frozen=True)
class LocalUser:
    id: str
    email: str
    display_name: str
    picture_url: str | None
    auth_provider: AuthProvider
    password_hash: str | None
    created_at: datetime
    last_login_at: datetime


@dataclass(frozen=True)
class ExternalIdentity:
    external_id: str
    email: str
    display_name: str | None
    picture_url: str | None
    issuer: str
    provider: AuthProvider = "google"
    email_verified: bool = False
