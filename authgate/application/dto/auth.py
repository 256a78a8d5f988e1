from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AuthUserOutput:
    id: str
    email: str
    display_name: str
    picture_url: str | None
    auth_provider: str


@dataclass(frozen=True)
class SessionToken:
    token: str
    subject_user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class SessionTokenClaims:
    subject_user_id: str
    email: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class AuthResult:
    session: SessionToken
    user: AuthUserOutput


@dataclass(frozen=True)
class ProviderTokens:
    access_token: str
    id_token: str | None
    refresh_token: str | None
    token_type: str | None
    expires_in: int | None


@dataclass(frozen=True)
class LoginLocalInput:
    username: str
    password: str


@dataclass(frozen=True)
class OAuthCallbackInput:
    session_id: str
    code: str
    state: str


@dataclass(frozen=True)
class LoginIdTokenInput:
    id_token: str
