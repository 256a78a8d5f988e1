from __future__ import annotations


PROVIDER_FAILURE_MESSAGE = "Google authentication failed"


class DomainError(Exception):
    """Base for domain errors."""


class AuthError(DomainError):
    """Base for every failure an authentication flow can end in."""


class ValidationError(AuthError):
    """Missing or malformed input."""


class CsrfStateMismatch(AuthError):
    """OAuth state absent, expired, or not equal to the one issued for the session."""


class CredentialsInvalid(AuthError):
    """Password login rejected. Always reported generically."""


class SessionTokenInvalid(AuthError):
    """Session token failed signature, issuer, audience, or lifetime checks."""


class PersistenceFailure(AuthError):
    """User or state store unreachable or failing."""


class UniqueConstraintViolation(DomainError):
    """Insert lost a race on a unique column. Recovered by the caller."""


class ProviderFailure(AuthError):
    """Identity provider call failed or returned unusable data.

    ``reason`` carries the internal diagnosis for logs; the message shown to
    callers is the same for every provider failure.
    """

    def __init__(self, reason: str):
        super().__init__(PROVIDER_FAILURE_MESSAGE)
        self.reason = reason


class ProviderExchangeFailure(ProviderFailure):
    """Authorization code could not be exchanged for tokens."""


class ProviderProfileFailure(ProviderFailure):
    """User-info endpoint call failed or returned an unusable profile."""


class ProviderVerificationFailure(ProviderFailure):
    """ID token could not be verified."""


class AudienceMismatch(ProviderVerificationFailure):
    """ID token was issued for a different client id."""
