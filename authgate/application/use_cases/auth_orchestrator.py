from __future__ import annotations

import logging
from typing import Callable, TypeVar

from authgate.application.dto.auth import (
    AuthResult,
    LoginIdTokenInput,
    LoginLocalInput,
    OAuthCallbackInput,
)
from authgate.application.ports.google_oauth_port import GoogleOauthPort
from authgate.application.ports.token_port import TokenPort
from authgate.domain.exceptions import (
    AuthError,
    CredentialsInvalid,
    CsrfStateMismatch,
    PersistenceFailure,
    ProviderExchangeFailure,
    ProviderFailure,
    ProviderProfileFailure,
    ProviderVerificationFailure,
    ValidationError,
)
from authgate.domain.services.auth_flow import AuthFlow, FlowKind, FlowState

from .auth_common import issue_session
from .csrf_state import CsrfStateStore
from .identity_resolver import IdentityResolver


logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthOrchestrator:
    """Runs the password, authorization-code and ID-token login flows.

    Every public method either returns an ``AuthResult`` (or the redirect URL
    for ``initiate_oauth``) or raises one of the ``AuthError`` subclasses. Steps
    run strictly in order and the first failure ends the flow.
    """

    def __init__(
        self,
        *,
        csrf_state: CsrfStateStore,
        google_oauth_port: GoogleOauthPort,
        identity_resolver: IdentityResolver,
        token_port: TokenPort,
    ):
        self._csrf_state = csrf_state
        self._google_oauth_port = google_oauth_port
        self._identity_resolver = identity_resolver
        self._token_port = token_port

    def login(self, command: LoginLocalInput) -> AuthResult:
        flow = AuthFlow(FlowKind.PASSWORD)
        if not command.username.strip() or not command.password:
            self._fail(flow, ValidationError("Username and password are required."))

        user = self._step(
            flow,
            lambda: self._identity_resolver.validate_local_credentials(command.username, command.password),
        )
        if user is None:
            self._fail(flow, CredentialsInvalid("Invalid username or password."))
        flow.advance(FlowState.CREDENTIALS_CHECKED)

        result = self._step(flow, lambda: issue_session(user=user, token_port=self._token_port))
        flow.advance(FlowState.ISSUED)
        logger.info("auth_orchestrator: login_succeeded flow=password email=%s", user.email)
        return result

    def initiate_oauth(self, session_id: str) -> str:
        flow = AuthFlow(FlowKind.CODE)
        if not session_id:
            self._fail(flow, ValidationError("A client session is required."))

        state = self._step(flow, lambda: self._csrf_state.issue(session_id))
        url = self._google_oauth_port.build_authorization_url(state=state)
        flow.advance(FlowState.AWAITING_PROVIDER_CALLBACK)
        logger.info("auth_orchestrator: oauth_initiated session=%s", session_id[:8])
        return url

    def handle_oauth_callback(self, command: OAuthCallbackInput) -> AuthResult:
        flow = AuthFlow.resume(FlowKind.CODE, FlowState.AWAITING_PROVIDER_CALLBACK)
        if not command.code:
            self._fail(flow, ValidationError("Authorization code is required."))

        state_ok = self._step(
            flow,
            lambda: self._csrf_state.validate_and_consume(command.session_id, command.state),
        )
        if not state_ok:
            self._fail(flow, CsrfStateMismatch("Invalid state parameter."))

        tokens = self._step(
            flow,
            lambda: self._google_oauth_port.exchange_code(code=command.code),
            unexpected=ProviderExchangeFailure,
        )
        identity = self._step(
            flow,
            lambda: self._google_oauth_port.fetch_profile(access_token=tokens.access_token),
            unexpected=ProviderProfileFailure,
        )
        flow.advance(FlowState.EXCHANGED)

        user = self._step(flow, lambda: self._identity_resolver.resolve_or_create(identity))
        flow.advance(FlowState.IDENTITY_RESOLVED)

        result = self._step(flow, lambda: issue_session(user=user, token_port=self._token_port))
        flow.advance(FlowState.ISSUED)
        logger.info("auth_orchestrator: login_succeeded flow=code email=%s", user.email)
        return result

    def login_with_id_token(self, command: LoginIdTokenInput) -> AuthResult:
        flow = AuthFlow(FlowKind.ID_TOKEN)
        if not command.id_token.strip():
            self._fail(flow, ValidationError("Google ID token is required."))

        identity = self._step(
            flow,
            lambda: self._google_oauth_port.verify_id_token(id_token=command.id_token.strip()),
            unexpected=ProviderVerificationFailure,
        )
        flow.advance(FlowState.VERIFIED)

        user = self._step(flow, lambda: self._identity_resolver.resolve_or_create(identity))
        flow.advance(FlowState.IDENTITY_RESOLVED)

        result = self._step(flow, lambda: issue_session(user=user, token_port=self._token_port))
        flow.advance(FlowState.ISSUED)
        logger.info("auth_orchestrator: login_succeeded flow=id_token email=%s", user.email)
        return result

    def _step(
        self,
        flow: AuthFlow,
        fn: Callable[[], T],
        *,
        unexpected: Callable[[str], AuthError] = PersistenceFailure,
    ) -> T:
        try:
            return fn()
        except AuthError as exc:
            self._fail(flow, exc)
        except Exception as exc:
            logger.exception(
                "auth_orchestrator: unexpected_error flow=%s state=%s",
                flow.kind.value,
                flow.state.value,
            )
            self._fail(flow, unexpected(f"unexpected {type(exc).__name__}"), cause=exc)

    def _fail(self, flow: AuthFlow, exc: AuthError, *, cause: BaseException | None = None):
        flow.fail(type(exc).__name__)
        if isinstance(exc, CsrfStateMismatch):
            logger.warning("auth_orchestrator: csrf_rejected flow=%s", flow.kind.value)
        elif isinstance(exc, ProviderFailure):
            logger.warning(
                "auth_orchestrator: provider_failed flow=%s kind=%s reason=%s",
                flow.kind.value,
                type(exc).__name__,
                exc.reason,
            )
        else:
            logger.info(
                "auth_orchestrator: flow_failed flow=%s kind=%s",
                flow.kind.value,
                type(exc).__name__,
            )
        if cause is not None:
            raise exc from cause
        raise exc
