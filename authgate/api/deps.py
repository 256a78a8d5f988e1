from __future__ import annotations

from functools import lru_cache

from fastapi import Depends, Header, HTTPException

from authgate.application.ports.state_store_port import StateStorePort
from authgate.application.use_cases.auth_orchestrator import AuthOrchestrator
from authgate.application.use_cases.csrf_state import CsrfStateStore
from authgate.application.use_cases.identity_resolver import IdentityResolver
from authgate.domain.entities.user import LocalUser
from authgate.domain.exceptions import PersistenceFailure, SessionTokenInvalid
from authgate.infrastructure.cache.memory_state_store import InMemoryStateStore
from authgate.infrastructure.clients.google_oauth_client import (
    GoogleOauthClient,
    GoogleOauthClientSettings,
)
from authgate.infrastructure.db.engine import get_engine
from authgate.infrastructure.db.repositories.accounts_repository import SqlAccountsRepository
from authgate.infrastructure.db.repositories.auth_state_repository import SqlStateStore
from authgate.infrastructure.security.password_hasher import PasswordHasher
from authgate.infrastructure.security.token_service import JwtTokenService
from authgate.shared.config import get_settings


def _get_db_engine():
    settings = get_settings()
    if not settings.postgres_dsn:
        raise HTTPException(status_code=500, detail="POSTGRES_DSN is required.")
    return get_engine(settings.postgres_dsn)


def _get_accounts_repository() -> SqlAccountsRepository:
    return SqlAccountsRepository(_get_db_engine())


@lru_cache(maxsize=1)
def _get_memory_state_store() -> InMemoryStateStore:
    return InMemoryStateStore()


def _get_state_store() -> StateStorePort:
    settings = get_settings()
    if settings.oauth_state_backend == "sql":
        return SqlStateStore(_get_db_engine())
    if settings.oauth_state_backend == "memory":
        return _get_memory_state_store()
    raise HTTPException(
        status_code=500,
        detail=f"Unsupported OAUTH_STATE_BACKEND: {settings.oauth_state_backend}.",
    )


@lru_cache(maxsize=1)
def _get_password_hasher() -> PasswordHasher:
    return PasswordHasher()


@lru_cache(maxsize=1)
def _get_token_service() -> JwtTokenService:
    settings = get_settings()
    if not settings.jwt_secret:
        raise HTTPException(status_code=500, detail="JWT_SECRET is required.")
    return JwtTokenService(
        jwt_secret=settings.jwt_secret,
        issuer=settings.jwt_issuer,
        audience=settings.jwt_audience,
        access_ttl_minutes=settings.jwt_access_ttl_minutes,
        clock_skew_seconds=settings.jwt_clock_skew_seconds,
    )


@lru_cache(maxsize=1)
def _get_google_oauth_client() -> GoogleOauthClient:
    settings = get_settings()
    if not settings.google_client_id:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_ID is required.")
    if not settings.google_client_secret:
        raise HTTPException(status_code=500, detail="GOOGLE_CLIENT_SECRET is required.")
    return GoogleOauthClient(
        GoogleOauthClientSettings(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.google_redirect_uri,
            timeout_seconds=settings.google_http_timeout_seconds,
            id_token_verification=settings.google_id_token_verification,
        )
    )


def get_auth_orchestrator() -> AuthOrchestrator:
    settings = get_settings()
    return AuthOrchestrator(
        csrf_state=CsrfStateStore(
            store=_get_state_store(),
            ttl_seconds=settings.oauth_state_ttl_seconds,
        ),
        google_oauth_port=_get_google_oauth_client(),
        identity_resolver=IdentityResolver(
            users_port=_get_accounts_repository(),
            password_hasher=_get_password_hasher(),
        ),
        token_port=_get_token_service(),
    )


def get_session_cookie_settings() -> tuple[int, bool]:
    settings = get_settings()
    return settings.oauth_state_ttl_seconds, settings.session_cookie_secure


def get_current_user(
    authorization: str = Header(...),
    token_service: JwtTokenService = Depends(_get_token_service),
    users_port: SqlAccountsRepository = Depends(_get_accounts_repository),
) -> LocalUser:
    if not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header.")
    token = authorization.replace("Bearer ", "", 1).strip()
    if not token:
        raise HTTPException(status_code=401, detail="Invalid authorization header.")

    try:
        claims = token_service.decode(token=token)
        user = users_port.find_user_by_id(user_id=claims.subject_user_id)
    except SessionTokenInvalid as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    except PersistenceFailure as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    if user is None:
        raise HTTPException(status_code=404, detail="User not found.")
    return user
