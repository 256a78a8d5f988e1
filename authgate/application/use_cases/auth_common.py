from __future__ import annotations

from datetime import datetime, timezone

from authgate.application.dto.auth import AuthResult, AuthUserOutput
from authgate.application.ports.token_port import TokenPort
from authgate.domain.entities.user import LocalUser


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def build_auth_user_output(user: LocalUser) -> AuthUserOutput:
    return AuthUserOutput(
        id=user.id,
        email=user.email,
        display_name=user.display_name,
        picture_url=user.picture_url,
        auth_provider=user.auth_provider,
    )


def issue_session(*, user: LocalUser, token_port: TokenPort) -> AuthResult:
    session = token_port.issue(user=user, now=utcnow())
    return AuthResult(session=session, user=build_auth_user_output(user))
