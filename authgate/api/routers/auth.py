from __future__ import annotations

import secrets

from fastapi import APIRouter, Cookie, Depends, HTTPException
from fastapi.responses import RedirectResponse

from authgate.api.deps import get_auth_orchestrator, get_current_user, get_session_cookie_settings
from authgate.api.schemas.auth import (
    AuthTokenResponse,
    AuthUserResponse,
    GoogleLoginRequest,
    LoginRequest,
)
from authgate.application.dto.auth import (
    AuthResult,
    LoginIdTokenInput,
    LoginLocalInput,
    OAuthCallbackInput,
)
from authgate.application.use_cases.auth_common import build_auth_user_output
from authgate.application.use_cases.auth_orchestrator import AuthOrchestrator
from authgate.domain.entities.user import LocalUser
from authgate.domain.exceptions import (
    AuthError,
    CredentialsInvalid,
    CsrfStateMismatch,
    PersistenceFailure,
    ProviderFailure,
    ValidationError,
)


router = APIRouter()

OAUTH_SESSION_COOKIE_NAME = "authgate_oauth_session"


def _http_error(exc: AuthError) -> HTTPException:
    if isinstance(exc, (ValidationError, CsrfStateMismatch)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (CredentialsInvalid, ProviderFailure)):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, PersistenceFailure):
        return HTTPException(status_code=500, detail="Internal server error.")
    return HTTPException(status_code=401, detail="Authentication failed.")


def _token_response(result: AuthResult) -> AuthTokenResponse:
    return AuthTokenResponse(
        access_token=result.session.token,
        issued_at=result.session.issued_at,
        expires_at=result.session.expires_at,
        user=AuthUserResponse(
            id=result.user.id,
            email=result.user.email,
            display_name=result.user.display_name,
            picture_url=result.user.picture_url,
            auth_provider=result.user.auth_provider,
        ),
    )


@router.post("/v1/auth/login", response_model=AuthTokenResponse)
def login_local(
    req: LoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    try:
        result = orchestrator.login(LoginLocalInput(username=req.username, password=req.password))
    except AuthError as exc:
        raise _http_error(exc) from exc
    return _token_response(result)


@router.get("/v1/auth/google")
def initiate_google_auth(
    session_cookie: str | None = Cookie(default=None, alias=OAUTH_SESSION_COOKIE_NAME),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
    cookie_settings: tuple[int, bool] = Depends(get_session_cookie_settings),
):
    session_id = session_cookie or secrets.token_urlsafe(32)
    try:
        url = orchestrator.initiate_oauth(session_id)
    except AuthError as exc:
        raise _http_error(exc) from exc

    max_age_seconds, secure = cookie_settings
    response = RedirectResponse(url=url, status_code=307)
    response.set_cookie(
        key=OAUTH_SESSION_COOKIE_NAME,
        value=session_id,
        httponly=True,
        samesite="lax",
        secure=secure,
        max_age=max_age_seconds,
        path="/v1/auth",
    )
    return response


@router.get("/v1/auth/google/callback", response_model=AuthTokenResponse)
def google_callback(
    code: str = "",
    state: str = "",
    session_cookie: str | None = Cookie(default=None, alias=OAUTH_SESSION_COOKIE_NAME),
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    try:
        result = orchestrator.handle_oauth_callback(
            OAuthCallbackInput(session_id=session_cookie or "", code=code, state=state)
        )
    except AuthError as exc:
        raise _http_error(exc) from exc
    return _token_response(result)


@router.post("/v1/auth/google-login", response_model=AuthTokenResponse)
def google_login(
    req: GoogleLoginRequest,
    orchestrator: AuthOrchestrator = Depends(get_auth_orchestrator),
):
    try:
        result = orchestrator.login_with_id_token(LoginIdTokenInput(id_token=req.id_token))
    except AuthError as exc:
        raise _http_error(exc) from exc
    return _token_response(result)


@router.get("/v1/auth/profile", response_model=AuthUserResponse)
def get_profile(user: LocalUser = Depends(get_current_user)):
    output = build_auth_user_output(user)
    return AuthUserResponse(
        id=output.id,
        email=output.email,
        display_name=output.display_name,
        picture_url=output.picture_url,
        auth_provider=output.auth_provider,
    )
