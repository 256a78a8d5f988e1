from __future__ import annotations

from dataclasses import dataclass
import logging
import time
from urllib.parse import urlencode

import httpx
from google.auth import exceptions as google_auth_exceptions
from google.auth import jwt as google_jwt

from authgate.application.dto.auth import ProviderTokens
from authgate.application.ports.google_oauth_port import GoogleOauthPort
from authgate.domain.entities.user import ExternalIdentity
from authgate.domain.exceptions import (
    AudienceMismatch,
    ProviderExchangeFailure,
    ProviderProfileFailure,
    ProviderVerificationFailure,
)


logger = logging.getLogger(__name__)


GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")
DEFAULT_SCOPES = ("openid", "email", "profile")


@dataclass(frozen=True)
class GoogleOauthClientSettings:
    client_id: str
    client_secret: str
    redirect_uri: str
    timeout_seconds: float = 10.0
    id_token_verification: str = "tokeninfo"
    authorization_endpoint: str = "https://accounts.google.com/o/oauth2/v2/auth"
    token_endpoint: str = "https://oauth2.googleapis.com/token"
    userinfo_endpoint: str = "https://www.googleapis.com/oauth2/v2/userinfo"
    tokeninfo_endpoint: str = "https://oauth2.googleapis.com/tokeninfo"
    certs_endpoint: str = "https://www.googleapis.com/oauth2/v1/certs"
    scopes: tuple[str, ...] = DEFAULT_SCOPES


class GoogleOauthClient(GoogleOauthPort):
    """Google identity provider client.

    All outbound calls share the same timeout. Every failure, including
    network errors and timeouts, is raised as one of the typed provider
    failures with an internal ``reason``; nothing from httpx escapes.
    """

    def __init__(
        self,
        settings: GoogleOauthClientSettings,
        *,
        transport: httpx.BaseTransport | None = None,
    ):
        if settings.id_token_verification not in ("tokeninfo", "local"):
            raise ValueError(f"Unsupported id token verification: {settings.id_token_verification}")
        self._settings = settings
        self._transport = transport

    def build_authorization_url(self, *, state: str) -> str:
        params = {
            "client_id": self._settings.client_id,
            "redirect_uri": self._settings.redirect_uri,
            "response_type": "code",
            "scope": " ".join(self._settings.scopes),
            "state": state,
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self._settings.authorization_endpoint}?{urlencode(params)}"

    def exchange_code(self, *, code: str) -> ProviderTokens:
        form = {
            "code": code,
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "redirect_uri": self._settings.redirect_uri,
            "grant_type": "authorization_code",
        }
        payload = self._request_json(
            "POST",
            self._settings.token_endpoint,
            failure=ProviderExchangeFailure,
            operation="exchange_code",
            data=form,
        )
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ProviderExchangeFailure("token response missing access_token")

        expires_in = payload.get("expires_in")
        return ProviderTokens(
            access_token=access_token,
            id_token=_str_or_none(payload.get("id_token")),
            refresh_token=_str_or_none(payload.get("refresh_token")),
            token_type=_str_or_none(payload.get("token_type")),
            expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
        )

    def fetch_profile(self, *, access_token: str) -> ExternalIdentity:
        payload = self._request_json(
            "GET",
            self._settings.userinfo_endpoint,
            failure=ProviderProfileFailure,
            operation="fetch_profile",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        external_id = payload.get("id") or payload.get("sub")
        email = payload.get("email")
        if not external_id or not isinstance(email, str) or not email:
            raise ProviderProfileFailure("profile missing id or email")

        return ExternalIdentity(
            external_id=str(external_id),
            email=email,
            display_name=_str_or_none(payload.get("name")),
            picture_url=_str_or_none(payload.get("picture")),
            issuer=GOOGLE_ISSUERS[1],
            email_verified=_email_verified(payload),
        )

    def verify_id_token(self, *, id_token: str) -> ExternalIdentity:
        if self._settings.id_token_verification == "local":
            claims = self._decode_id_token_locally(id_token)
        else:
            claims = self._request_json(
                "GET",
                self._settings.tokeninfo_endpoint,
                failure=ProviderVerificationFailure,
                operation="verify_id_token",
                params={"id_token": id_token},
            )
        return self._identity_from_claims(claims)

    def _decode_id_token_locally(self, id_token: str) -> dict:
        certs = self._request_json(
            "GET",
            self._settings.certs_endpoint,
            failure=ProviderVerificationFailure,
            operation="fetch_certs",
        )
        try:
            # Audience is checked afterwards so a mismatch is reported distinctly.
            claims = google_jwt.decode(id_token, certs=certs, verify=True, audience=None)
        except (ValueError, google_auth_exceptions.GoogleAuthError) as exc:
            raise ProviderVerificationFailure(f"id_token signature or claims invalid: {exc}") from exc
        if not isinstance(claims, dict):
            raise ProviderVerificationFailure("id_token payload is not an object")
        return claims

    def _identity_from_claims(self, claims: dict) -> ExternalIdentity:
        audience = claims.get("aud")
        if audience != self._settings.client_id:
            logger.warning(
                "google_oauth_client: audience_mismatch expected=%s got=%s",
                self._settings.client_id,
                audience,
            )
            raise AudienceMismatch(f"audience mismatch: got {audience!r}")

        issuer = claims.get("iss")
        if issuer not in GOOGLE_ISSUERS:
            raise ProviderVerificationFailure(f"unexpected issuer {issuer!r}")

        expires_at = claims.get("exp")
        if expires_at is not None:
            try:
                expired = float(expires_at) <= time.time()
            except (TypeError, ValueError) as exc:
                raise ProviderVerificationFailure("id_token exp claim is not numeric") from exc
            if expired:
                raise ProviderVerificationFailure("id_token expired")

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not isinstance(email, str) or not email:
            raise ProviderVerificationFailure("id_token missing sub or email")

        return ExternalIdentity(
            external_id=str(subject),
            email=email,
            display_name=_str_or_none(claims.get("name")),
            picture_url=_str_or_none(claims.get("picture")),
            issuer=str(issuer),
            email_verified=_email_verified(claims),
        )

    def _request_json(self, method: str, url: str, *, failure, operation: str, **kwargs) -> dict:
        try:
            with httpx.Client(timeout=self._settings.timeout_seconds, transport=self._transport) as client:
                response = client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise failure(f"{operation} timed out") from exc
        except httpx.HTTPError as exc:
            raise failure(f"{operation} transport error: {exc}") from exc

        if not response.is_success:
            raise failure(f"{operation} returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise failure(f"{operation} returned a non-JSON body") from exc
        if not isinstance(payload, dict):
            raise failure(f"{operation} returned a non-object body")

        logger.debug("google_oauth_client: %s ok status=%s", operation, response.status_code)
        return payload


def _str_or_none(value) -> str | None:
    return value if isinstance(value, str) and value else None


def _email_verified(payload: dict) -> bool:
    # userinfo v2 names the flag verified_email; tokeninfo sends it as a string.
    raw = payload.get("email_verified", payload.get("verified_email", False))
    if isinstance(raw, str):
        return raw.lower() == "true"
    return bool(raw)
