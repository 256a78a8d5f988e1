from __future__ import annotations

from dataclasses import replace
from threading import Lock

import pytest

from authgate.application.dto.auth import ProviderTokens
from authgate.application.use_cases.auth_common import utcnow
from authgate.application.use_cases.auth_orchestrator import AuthOrchestrator
from authgate.application.use_cases.csrf_state import CsrfStateStore
from authgate.application.use_cases.identity_resolver import IdentityResolver
from authgate.domain.entities.user import ExternalIdentity, LocalUser
from authgate.domain.exceptions import AudienceMismatch, UniqueConstraintViolation
from authgate.infrastructure.cache.memory_state_store import InMemoryStateStore
from authgate.infrastructure.security.password_hasher import PasswordHasher
from authgate.infrastructure.security.token_service import JwtTokenService


CLIENT_ID = "test-client.apps.googleusercontent.com"
JWT_SECRET = "test-secret-with-at-least-thirty-two-bytes"


class FakeUsersPort:
    def __init__(self):
        self.users: dict[str, LocalUser] = {}
        self.insert_calls = 0
        self.update_calls = 0
        self._lock = Lock()

    def find_user_by_email(self, *, email: str) -> LocalUser | None:
        return self.users.get(email.lower())

    def find_user_by_id(self, *, user_id: str) -> LocalUser | None:
        for user in self.users.values():
            if user.id == user_id:
                return user
        return None

    def insert_user(self, user: LocalUser) -> LocalUser:
        with self._lock:
            self.insert_calls += 1
            if user.email.lower() in self.users:
                raise UniqueConstraintViolation(user.email)
            self.users[user.email.lower()] = user
        return user

    def update_user(self, user: LocalUser) -> LocalUser:
        with self._lock:
            self.update_calls += 1
            self.users[user.email.lower()] = user
        return user


class FakeGoogleOauthPort:
    def __init__(self):
        self.tokens = ProviderTokens(
            access_token="T",
            id_token=None,
            refresh_token=None,
            token_type="Bearer",
            expires_in=3600,
        )
        self.profile = ExternalIdentity(
            external_id="google-sub-1",
            email="a@x.com",
            display_name="A",
            picture_url=None,
            issuer="https://accounts.google.com",
            email_verified=True,
        )
        self.id_token_audience = CLIENT_ID
        self.exchanged_codes: list[str] = []
        self.profile_tokens: list[str] = []
        self.verified_tokens: list[str] = []

    def build_authorization_url(self, *, state: str) -> str:
        return (
            "https://accounts.google.com/o/oauth2/v2/auth?"
            f"client_id={CLIENT_ID}&response_type=code&scope=openid+email+profile&state={state}"
        )

    def exchange_code(self, *, code: str) -> ProviderTokens:
        self.exchanged_codes.append(code)
        return self.tokens

    def fetch_profile(self, *, access_token: str) -> ExternalIdentity:
        self.profile_tokens.append(access_token)
        return self.profile

    def verify_id_token(self, *, id_token: str) -> ExternalIdentity:
        self.verified_tokens.append(id_token)
        if self.id_token_audience != CLIENT_ID:
            raise AudienceMismatch(f"audience mismatch: got {self.id_token_audience!r}")
        return self.profile


@pytest.fixture
def users_port() -> FakeUsersPort:
    return FakeUsersPort()


@pytest.fixture
def google_port() -> FakeGoogleOauthPort:
    return FakeGoogleOauthPort()


@pytest.fixture
def state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


@pytest.fixture
def password_hasher() -> PasswordHasher:
    return PasswordHasher()


@pytest.fixture
def token_service() -> JwtTokenService:
    return JwtTokenService(
        jwt_secret=JWT_SECRET,
        issuer="authgate",
        audience="authgate-clients",
        access_ttl_minutes=60,
    )


@pytest.fixture
def identity_resolver(users_port, password_hasher) -> IdentityResolver:
    return IdentityResolver(users_port=users_port, password_hasher=password_hasher)


@pytest.fixture
def orchestrator(state_store, google_port, identity_resolver, token_service) -> AuthOrchestrator:
    return AuthOrchestrator(
        csrf_state=CsrfStateStore(store=state_store, ttl_seconds=1800),
        google_oauth_port=google_port,
        identity_resolver=identity_resolver,
        token_port=token_service,
    )


@pytest.fixture
def make_local_user(password_hasher):
    def _make(email: str, password: str, *, provider: str = "local", **overrides) -> LocalUser:
        now = utcnow()
        user = LocalUser(
            id=f"user-{email}",
            email=email,
            display_name=email.split("@")[0],
            picture_url=None,
            auth_provider=provider,
            password_hash=password_hasher.hash(password),
            created_at=now,
            last_login_at=now,
        )
        return replace(user, **overrides)

    return _make
