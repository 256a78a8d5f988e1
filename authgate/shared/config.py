from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


def _env(name: str, default: str | None = None) -> str | None:
    return os.getenv(name, default)


def _bool(name: str, default: str = "false") -> bool:
    return (_env(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    google_client_id: str
    google_client_secret: str
    google_redirect_uri: str
    google_id_token_verification: str
    google_http_timeout_seconds: float
    jwt_secret: str
    jwt_issuer: str
    jwt_audience: str
    jwt_access_ttl_minutes: int
    jwt_clock_skew_seconds: int
    oauth_state_ttl_seconds: int
    oauth_state_backend: str
    postgres_dsn: str
    session_cookie_secure: bool
    log_level: str


def get_settings() -> Settings:
    return Settings(
        google_client_id=_env("GOOGLE_CLIENT_ID", ""),
        google_client_secret=_env("GOOGLE_CLIENT_SECRET", ""),
        google_redirect_uri=_env("GOOGLE_REDIRECT_URI", "http://localhost:8000/v1/auth/google/callback"),
        google_id_token_verification=_env("GOOGLE_ID_TOKEN_VERIFICATION", "tokeninfo").strip().lower(),
        google_http_timeout_seconds=float(_env("GOOGLE_HTTP_TIMEOUT_SECONDS", "10")),
        jwt_secret=_env("JWT_SECRET", ""),
        jwt_issuer=_env("JWT_ISSUER", "authgate"),
        jwt_audience=_env("JWT_AUDIENCE", "authgate-clients"),
        jwt_access_ttl_minutes=int(_env("JWT_ACCESS_TTL_MINUTES", "60")),
        jwt_clock_skew_seconds=int(_env("JWT_CLOCK_SKEW_SECONDS", "0")),
        oauth_state_ttl_seconds=int(_env("OAUTH_STATE_TTL_SECONDS", "1800")),
        oauth_state_backend=_env("OAUTH_STATE_BACKEND", "memory").strip().lower(),
        postgres_dsn=_env("POSTGRES_DSN", ""),
        session_cookie_secure=_bool("SESSION_COOKIE_SECURE"),
        log_level=_env("LOG_LEVEL", "INFO").strip().upper(),
    )
