from __future__ import annotations

import time
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from authgate.domain.exceptions import (
    PROVIDER_FAILURE_MESSAGE,
    AudienceMismatch,
    ProviderExchangeFailure,
    ProviderProfileFailure,
    ProviderVerificationFailure,
)
from authgate.infrastructure.clients.google_oauth_client import (
    GoogleOauthClient,
    GoogleOauthClientSettings,
)


CLIENT_ID = "test-client.apps.googleusercontent.com"


def _make_client(handler, *, verification: str = "tokeninfo") -> GoogleOauthClient:
    return GoogleOauthClient(
        GoogleOauthClientSettings(
            client_id=CLIENT_ID,
            client_secret="shh",
            redirect_uri="http://localhost:8000/v1/auth/google/callback",
            timeout_seconds=5,
            id_token_verification=verification,
        ),
        transport=httpx.MockTransport(handler),
    )


def _claims(**overrides) -> dict:
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "google-sub-1",
        "email": "a@x.com",
        "name": "A",
        "picture": "https://example.com/a.png",
        "email_verified": "true",
        "exp": str(int(time.time()) + 600),
    }
    claims.update(overrides)
    return claims


def test_authorization_url_embeds_client_redirect_scope_and_state():
    client = _make_client(lambda request: httpx.Response(500))

    url = client.build_authorization_url(state="s-123")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert parsed.netloc == "accounts.google.com"
    assert query["client_id"] == [CLIENT_ID]
    assert query["redirect_uri"] == ["http://localhost:8000/v1/auth/google/callback"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["openid email profile"]
    assert query["state"] == ["s-123"]


def test_exchange_code_posts_form_and_maps_tokens():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(
            200,
            json={"access_token": "T", "id_token": "idt", "token_type": "Bearer", "expires_in": 3599},
        )

    tokens = _make_client(handler).exchange_code(code="abc")

    assert seen["method"] == "POST"
    assert seen["url"] == "https://oauth2.googleapis.com/token"
    assert seen["form"]["code"] == ["abc"]
    assert seen["form"]["grant_type"] == ["authorization_code"]
    assert seen["form"]["client_secret"] == ["shh"]
    assert tokens.access_token == "T"
    assert tokens.id_token == "idt"
    assert tokens.refresh_token is None
    assert tokens.expires_in == 3599


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(200, text="not json"),
        httpx.Response(200, json={"token_type": "Bearer"}),
    ],
)
def test_exchange_code_failures_are_typed(response):
    client = _make_client(lambda request: response)

    with pytest.raises(ProviderExchangeFailure) as exc_info:
        client.exchange_code(code="abc")

    assert str(exc_info.value) == PROVIDER_FAILURE_MESSAGE


def test_exchange_code_timeout_maps_to_exchange_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(ProviderExchangeFailure) as exc_info:
        _make_client(handler).exchange_code(code="abc")

    assert "timed out" in exc_info.value.reason


def test_fetch_profile_sends_bearer_and_maps_identity():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.headers["Authorization"] == "Bearer T"
        return httpx.Response(
            200,
            json={"id": "123", "email": "a@x.com", "name": "A", "picture": "https://example.com/a.png"},
        )

    identity = _make_client(handler).fetch_profile(access_token="T")

    assert identity.external_id == "123"
    assert identity.email == "a@x.com"
    assert identity.display_name == "A"
    assert identity.picture_url == "https://example.com/a.png"
    assert identity.provider == "google"


def test_fetch_profile_without_email_fails():
    client = _make_client(lambda request: httpx.Response(200, json={"id": "123"}))

    with pytest.raises(ProviderProfileFailure):
        client.fetch_profile(access_token="T")


def test_fetch_profile_network_error_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("down", request=request)

    with pytest.raises(ProviderProfileFailure) as exc_info:
        _make_client(handler).fetch_profile(access_token="T")

    assert "transport error" in exc_info.value.reason


def test_verify_id_token_via_tokeninfo():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/tokeninfo"
        assert request.url.params["id_token"] == "idt"
        return httpx.Response(200, json=_claims())

    identity = _make_client(handler).verify_id_token(id_token="idt")

    assert identity.external_id == "google-sub-1"
    assert identity.email == "a@x.com"
    assert identity.issuer == "https://accounts.google.com"


def test_verify_id_token_rejects_foreign_audience():
    client = _make_client(lambda request: httpx.Response(200, json=_claims(aud="other-client")))

    with pytest.raises(AudienceMismatch) as exc_info:
        client.verify_id_token(id_token="idt")

    assert isinstance(exc_info.value, ProviderVerificationFailure)
    assert str(exc_info.value) == PROVIDER_FAILURE_MESSAGE


@pytest.mark.parametrize(
    "claims",
    [
        _claims(iss="https://evil.example.com"),
        _claims(exp=str(int(time.time()) - 10)),
        _claims(email=None),
    ],
)
def test_verify_id_token_rejects_bad_claims(claims):
    client = _make_client(lambda request: httpx.Response(200, json=claims))

    with pytest.raises(ProviderVerificationFailure):
        client.verify_id_token(id_token="idt")


def test_verify_id_token_http_error_fails():
    client = _make_client(lambda request: httpx.Response(400, json={"error": "invalid_token"}))

    with pytest.raises(ProviderVerificationFailure) as exc_info:
        client.verify_id_token(id_token="idt")

    assert "HTTP 400" in exc_info.value.reason


def test_local_verification_checks_audience_after_signature(monkeypatch: pytest.MonkeyPatch):
    certs = {"kid-1": "-----BEGIN CERTIFICATE-----\n...\n-----END CERTIFICATE-----\n"}
    decoded = {}

    def fake_decode(token, certs=None, verify=True, audience=None):
        decoded["token"] = token
        decoded["certs"] = certs
        decoded["audience"] = audience
        return _claims(aud="other-client")

    monkeypatch.setattr(
        "authgate.infrastructure.clients.google_oauth_client.google_jwt.decode",
        fake_decode,
    )
    client = _make_client(lambda request: httpx.Response(200, json=certs), verification="local")

    with pytest.raises(AudienceMismatch):
        client.verify_id_token(id_token="idt")

    assert decoded == {"token": "idt", "certs": certs, "audience": None}


def test_local_verification_signature_error_fails(monkeypatch: pytest.MonkeyPatch):
    def fake_decode(token, certs=None, verify=True, audience=None):
        raise ValueError("Could not verify token signature.")

    monkeypatch.setattr(
        "authgate.infrastructure.clients.google_oauth_client.google_jwt.decode",
        fake_decode,
    )
    client = _make_client(lambda request: httpx.Response(200, json={"kid-1": "pem"}), verification="local")

    with pytest.raises(ProviderVerificationFailure) as exc_info:
        client.verify_id_token(id_token="idt")

    assert not isinstance(exc_info.value, AudienceMismatch)


def test_unknown_verification_strategy_is_rejected():
    with pytest.raises(ValueError):
        _make_client(lambda request: httpx.Response(200), verification="none")


@pytest.mark.parametrize(("raw", "expected"), [("true", True), ("False", False), (True, True)])
def test_verify_id_token_carries_email_verified(raw, expected):
    client = _make_client(lambda request: httpx.Response(200, json=_claims(email_verified=raw)))

    assert client.verify_id_token(id_token="idt").email_verified is expected


def test_fetch_profile_reads_userinfo_verified_flag():
    client = _make_client(
        lambda request: httpx.Response(200, json={"id": "123", "email": "a@x.com", "verified_email": True})
    )
    unflagged = _make_client(lambda request: httpx.Response(200, json={"id": "123", "email": "a@x.com"}))

    assert client.fetch_profile(access_token="T").email_verified is True
    assert unflagged.fetch_profile(access_token="T").email_verified is False
