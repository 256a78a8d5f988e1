from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt

from authgate.application.dto.auth import SessionToken, SessionTokenClaims
from authgate.application.ports.token_port import TokenPort
from authgate.domain.entities.user import LocalUser
from authgate.domain.exceptions import SessionTokenInvalid


ALGORITHM = "HS256"
TOKEN_TYPE = "access"


class JwtTokenService(TokenPort):
    def __init__(
        self,
        *,
        jwt_secret: str,
        issuer: str,
        audience: str,
        access_ttl_minutes: int,
        clock_skew_seconds: int = 0,
    ):
        self._jwt_secret = jwt_secret
        self._issuer = issuer
        self._audience = audience
        self._access_ttl_minutes = access_ttl_minutes
        self._clock_skew_seconds = clock_skew_seconds

    def issue(self, *, user: LocalUser, now: datetime) -> SessionToken:
        issued_at = now.replace(microsecond=0)
        expires_at = issued_at + timedelta(minutes=self._access_ttl_minutes)
        payload = {
            "sub": user.id,
            "email": user.email,
            "type": TOKEN_TYPE,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        token = jwt.encode(payload, self._jwt_secret, algorithm=ALGORITHM)
        return SessionToken(
            token=token,
            subject_user_id=user.id,
            email=user.email,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def decode(self, *, token: str) -> SessionTokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._jwt_secret,
                algorithms=[ALGORITHM],
                issuer=self._issuer,
                audience=self._audience,
                leeway=self._clock_skew_seconds,
                options={"require": ["sub", "email", "iat", "exp", "iss", "aud"]},
            )
        except jwt.PyJWTError as exc:
            raise SessionTokenInvalid("Invalid session token.") from exc

        if payload.get("type") != TOKEN_TYPE:
            raise SessionTokenInvalid("Invalid token type.")

        user_id = payload.get("sub")
        email = payload.get("email")
        if not isinstance(user_id, str) or not user_id or not isinstance(email, str):
            raise SessionTokenInvalid("Invalid token subject.")

        return SessionTokenClaims(
            subject_user_id=user_id,
            email=email,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
